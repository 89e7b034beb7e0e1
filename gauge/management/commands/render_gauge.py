from __future__ import annotations

import json
from pathlib import Path

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from gauge.assets import GaugeImage, decode_image, load_background, register_handle_font
from gauge.renderer import GaugeScene, render_canvas_commands, render_png
from gauge.services import background_path, background_url, get_render_config
from gauge.states import classify


class Command(BaseCommand):
    help = "Renderiza um card do gauge offline (PNG, ou JSON de comandos do canvas)."

    def add_arguments(self, parser):
        parser.add_argument("--score", required=True, type=int, help="Score de 0 a 100")
        parser.add_argument("--username", default="", help="Handle sem @ (opcional)")
        parser.add_argument("--avatar", help="Arquivo de imagem do avatar (opcional)")
        parser.add_argument("--output", default="gauge.png", help="Arquivo de saída")
        parser.add_argument(
            "--format",
            choices=["png", "commands"],
            default="png",
            help="png (rasterizado) ou commands (lista JSON para o canvas)",
        )

    def handle(self, *args, **options):
        score = options["score"]
        if not 0 <= score <= 100:
            raise CommandError("--score deve estar entre 0 e 100.")

        config = get_render_config()
        state = classify(score, config.thresholds)
        as_commands = options["format"] == "commands"
        if as_commands:
            # O player do canvas baixa a arte pela URL de estáticos; aqui só as dimensões importam
            background = load_background(background_path(state), url=background_url(state), with_pixels=False)
        else:
            background = load_background(background_path(state))
        if background is None:
            self.stderr.write(self.style.WARNING(f"Arte {state.background_filename} indisponível; fundo neutro."))

        avatar = None
        if options.get("avatar"):
            avatar_path = Path(options["avatar"])
            try:
                data = avatar_path.read_bytes()
            except OSError as exc:
                raise CommandError(f"Não foi possível ler o avatar: {exc}") from exc
            pixels = decode_image(data, label="avatar")
            if pixels is not None:
                height, width = pixels.shape[:2]
                if as_commands:
                    avatar = GaugeImage(width=width, height=height, url=avatar_path.resolve().as_uri())
                else:
                    avatar = GaugeImage(width=width, height=height, pixels=pixels)

        scene = GaugeScene(
            score=score,
            username=options["username"].lstrip("@"),
            config=config,
            background=background,
            avatar=avatar,
        )

        output = Path(options["output"])
        if as_commands:
            output.write_text(json.dumps(list(render_canvas_commands(scene)), indent=2), encoding="utf-8")
        else:
            png = render_png(
                scene,
                arc_slices=settings.GAUGE_ARC_SLICES,
                font_family=register_handle_font(str(settings.ASSETS_DIR)),
            )
            output.write_bytes(png)

        self.stdout.write(self.style.SUCCESS(f"Gauge {score}/100 ({state.value}) salvo em {output}"))
