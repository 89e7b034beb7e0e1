"""
Testes do app gauge - score, faixas, geometria, renderer (canvas e raster) e views.
"""

import io
import json
import math
import shutil
import tempfile
import time
from dataclasses import FrozenInstanceError
from pathlib import Path
from unittest.mock import MagicMock, patch

import requests
from django.conf import settings
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import SimpleTestCase, override_settings
from django.urls import reverse
from PIL import Image

from sentiment.services import ScoringWebhookError, WebhookResult

from .assets import GaugeImage, decode_image, load_background
from .config import RenderConfig, Thresholds
from .geometry import compute_geometry, default_needle_radii, scale_about_midpoint
from .renderer import (
    DEFAULT_FRAME_SIZE,
    NEUTRAL_FILL,
    RAMP_START_HEX,
    GaugeRenderer,
    GaugeScene,
    conic_stops,
    ramp_color,
    ramp_hex,
    render_canvas_commands,
    render_png,
    slice_ramp_position,
    value_arc_slices,
)
from .scoring import SentimentTally, aggregate_score, merge_tallies, normalized_score
from .services import RENDER_CONTEXT_KEY, RENDER_CONTEXT_TTL, RenderContext, background_url
from .states import SentimentState, classify
from .surfaces import CanvasCommandSurface, MatplotlibSurface, em_ascent_ratio
from .utils import normalize_color, parse_lenient_float, parse_lenient_int, round_half_up

STATE_COLORS = {
    SentimentState.STRONGLY_BEARISH: (120, 20, 20, 255),
    SentimentState.BEARISH: (160, 60, 40, 255),
    SentimentState.NEUTRAL: (90, 90, 90, 255),
    SentimentState.BULLISH: (40, 120, 60, 255),
    SentimentState.STRONGLY_BULLISH: (20, 150, 40, 255),
}


def png_bytes(size=(40, 20), color=(10, 200, 30, 255)):
    buffer = io.BytesIO()
    Image.new("RGBA", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


def write_state_art(directory: Path, size=(800, 400)):
    for state, color in STATE_COLORS.items():
        Image.new("RGBA", size, color).save(directory / state.background_filename)


def hex_to_rgb(value):
    return tuple(int(value[i : i + 2], 16) for i in (1, 3, 5))


def set_session(client, **data):
    """Grava dados na sessão de cookie assinado do client de teste."""
    session = client.session
    for key, value in data.items():
        session[key] = value
    session.save()
    client.cookies[settings.SESSION_COOKIE_NAME] = session.session_key


class NoConicSurface(CanvasCommandSurface):
    """Grava comandos como o canvas, mas sem gradiente cônico (força o caminho de fatias)."""

    has_native_conic_gradient = False


# ---------------------------------------------------------------------------
# Utils
# ---------------------------------------------------------------------------


class LenientParseTest(SimpleTestCase):
    """Testes do parse tolerante das variáveis de ambiente."""

    def test_inteiro_embutido_na_string(self):
        self.assertEqual(parse_lenient_int("150x"), 150)
        self.assertEqual(parse_lenient_int("-12px"), -12)
        self.assertEqual(parse_lenient_int("  7 "), 7)
        self.assertEqual(parse_lenient_int("a1b2"), 1)

    def test_sem_inteiro_usa_default(self):
        self.assertEqual(parse_lenient_int("abc", 32), 32)
        self.assertEqual(parse_lenient_int("", 5), 5)
        self.assertEqual(parse_lenient_int(None, 9), 9)

    def test_float_zero_ou_invalido_usa_default(self):
        self.assertEqual(parse_lenient_float("2.5", 1.0), 2.5)
        self.assertEqual(parse_lenient_float("0", 1.0), 1.0)
        self.assertEqual(parse_lenient_float("nan", 1.0), 1.0)
        self.assertEqual(parse_lenient_float("1.5x", 1.0), 1.0)
        self.assertEqual(parse_lenient_float("", 0.025), 0.025)

    def test_round_half_up(self):
        self.assertEqual(round_half_up(2.5), 3)
        self.assertEqual(round_half_up(0.5), 1)
        self.assertEqual(round_half_up(12.5), 13)
        self.assertEqual(round_half_up(-0.5), 0)
        self.assertEqual(round_half_up(2.4999), 2)

    def test_normalize_color(self):
        self.assertEqual(normalize_color("#FFF"), "#ffffff")
        self.assertEqual(normalize_color("#12ab34"), "#12ab34")
        self.assertEqual(normalize_color("rgb(1, 2, 3)"), "#010203")
        self.assertEqual(normalize_color("White"), "#ffffff")
        self.assertIsNone(normalize_color("banana"))
        self.assertIsNone(normalize_color(""))


# ---------------------------------------------------------------------------
# RenderConfig
# ---------------------------------------------------------------------------


class RenderConfigTest(SimpleTestCase):
    """Testes de RenderConfig.from_raw."""

    def test_defaults_sem_variaveis(self):
        config = RenderConfig.from_raw({})

        self.assertEqual(config.thresholds.as_tuple(), (20, 40, 60, 80))
        self.assertEqual((config.box.left, config.box.right, config.box.top, config.box.bottom), (0, 0, 0, 0))
        self.assertEqual(config.needle.length_scale, 1.0)
        self.assertEqual(config.needle.width_fraction, 0.025)
        self.assertEqual((config.avatar.x, config.avatar.y, config.avatar.size), (32, 32, 96))
        self.assertEqual((config.handle.x, config.handle.y, config.handle.font_px), (144, 48, 36))
        self.assertEqual(config.handle.color, "#ffffff")

    def test_thresholds_presos_e_nao_decrescentes(self):
        config = RenderConfig.from_raw({"THRESH_SB": "150", "THRESH_B": "10"})
        self.assertEqual(config.thresholds.as_tuple(), (100, 100, 100, 100))

        config = RenderConfig.from_raw({"THRESH_SB": "50", "THRESH_B": "30", "THRESH_N": "70", "THRESH_BU": "-5"})
        self.assertEqual(config.thresholds.as_tuple(), (50, 50, 70, 70))

    def test_limites_minimos(self):
        config = RenderConfig.from_raw(
            {
                "NEEDLE_LEN_SCALE": "0.01",
                "NEEDLE_WIDTH_FRAC": "0.001",
                "PFP_SIZE": "0",
                "HANDLE_FONT_PX": "4",
            }
        )
        self.assertEqual(config.needle.length_scale, 0.1)
        self.assertEqual(config.needle.width_fraction, 0.003)
        self.assertEqual(config.avatar.size, 1)
        self.assertEqual(config.handle.font_px, 8)

    def test_zero_no_float_cai_no_default(self):
        config = RenderConfig.from_raw({"NEEDLE_LEN_SCALE": "0"})
        self.assertEqual(config.needle.length_scale, 1.0)

    def test_cor_invalida_usa_branco_e_loga(self):
        with self.assertLogs("gauge.config", level="WARNING") as logs:
            config = RenderConfig.from_raw({"HANDLE_COLOR": "not-a-color"})
        self.assertEqual(config.handle.color, "#ffffff")
        self.assertIn("HANDLE_COLOR", logs.output[0])

    def test_configuracao_imutavel(self):
        config = RenderConfig.from_raw({})
        with self.assertRaises(FrozenInstanceError):
            config.handle = None


# ---------------------------------------------------------------------------
# Score
# ---------------------------------------------------------------------------


class ScoringTest(SimpleTestCase):
    """Testes da agregação e normalização do score."""

    def test_extremos_do_score(self):
        self.assertEqual(normalized_score(SentimentTally(positive=7)), 100)
        self.assertEqual(normalized_score(SentimentTally(negative=7)), 0)
        self.assertEqual(normalized_score(SentimentTally(neutral=7)), 50)

    def test_score_sempre_entre_0_e_100(self):
        for p in range(0, 6):
            for neu in range(0, 6):
                for neg in range(0, 6):
                    if p + neu + neg == 0:
                        continue
                    result = aggregate_score({"Positive": p, "Neutral": neu, "Negative": neg})
                    self.assertTrue(0 <= result.value <= 100)

    def test_arredonda_meio_para_cima(self):
        # (1 - 7 + 8) / 16 * 100 = 12.5
        self.assertEqual(aggregate_score({"Positive": 1, "Negative": 7}).value, 13)
        # (5 - 3 + 8) / 16 * 100 = 62.5
        self.assertEqual(aggregate_score({"Positive": 5, "Negative": 3}).value, 63)

    def test_lista_equivale_ao_tally_somado(self):
        a = {"Positive": 3, "Neutral": 2, "Negative": 1}
        b = {"Positive": 0.5, "Neutral": 4, "Negative": 6}
        merged = {"Positive": 3.5, "Neutral": 6, "Negative": 7}

        self.assertEqual(aggregate_score([a, b]), aggregate_score(merged))
        self.assertEqual(merge_tallies([a, b]), merge_tallies(merged))

    def test_chaves_minusculas_aceitas(self):
        self.assertEqual(aggregate_score({"positive": 2, "neutral": 0, "negative": 0}).value, 100)

    def test_campos_malformados_contam_zero(self):
        tally = SentimentTally.from_payload(
            {"Positive": "3", "Neutral": float("nan"), "Negative": True}
        )
        self.assertEqual(tally.total, 0)
        self.assertEqual(SentimentTally.from_payload({"Positive": -4, "Neutral": 2}).positive, 0)

    def test_payload_que_nao_e_objeto_nao_contribui(self):
        for payload in ("oops", 42, None, [1, "x", None]):
            self.assertEqual(merge_tallies(payload).total, 0)

    def test_tallies_zerados_sem_posts_indisponivel(self):
        result = aggregate_score({"Positive": 0, "Neutral": 0, "Negative": 0}, submitted_count=0)
        self.assertFalse(result.available)
        self.assertIsNone(result.value)

    def test_tallies_zerados_com_posts_usa_fallback(self):
        result = aggregate_score({"Positive": 0, "Neutral": 0, "Negative": 0}, submitted_count=5)
        self.assertEqual(result.value, 50)
        self.assertTrue(result.from_fallback)

    def test_fallback_desligado(self):
        result = aggregate_score({}, submitted_count=5, allow_count_fallback=False)
        self.assertFalse(result.available)

    def test_normalizacao_sem_total_levanta(self):
        with self.assertRaises(ValueError):
            normalized_score(SentimentTally())


# ---------------------------------------------------------------------------
# Estados
# ---------------------------------------------------------------------------


class ClassifyTest(SimpleTestCase):
    """Testes de classify e das artes de fundo."""

    def setUp(self):
        self.thresholds = Thresholds()

    def test_faixas_padrao(self):
        expected = {
            0: SentimentState.STRONGLY_BEARISH,
            19: SentimentState.STRONGLY_BEARISH,
            20: SentimentState.BEARISH,
            39: SentimentState.BEARISH,
            40: SentimentState.NEUTRAL,
            60: SentimentState.BULLISH,
            79: SentimentState.BULLISH,
            80: SentimentState.STRONGLY_BULLISH,
            100: SentimentState.STRONGLY_BULLISH,
        }
        for score, state in expected.items():
            self.assertEqual(classify(score, self.thresholds), state, score)

    def test_fronteiras_mudam_de_estado(self):
        for t in self.thresholds.as_tuple():
            self.assertNotEqual(classify(t - 1, self.thresholds), classify(t, self.thresholds))

    def test_faixas_colapsadas_sao_puladas(self):
        thresholds = Thresholds.build(30, 30, 30, 30)
        self.assertEqual(classify(29, thresholds), SentimentState.STRONGLY_BEARISH)
        self.assertEqual(classify(30, thresholds), SentimentState.STRONGLY_BULLISH)

    def test_funcao_total(self):
        for thresholds in (Thresholds(), Thresholds.build(0, 0, 0, 0), Thresholds.build(100, 100, 100, 100)):
            for score in range(-5, 106):
                self.assertIsInstance(classify(score, thresholds), SentimentState)

    def test_score_fora_da_faixa_e_preso(self):
        self.assertEqual(classify(-10, self.thresholds), SentimentState.STRONGLY_BEARISH)
        self.assertEqual(classify(150, self.thresholds), SentimentState.STRONGLY_BULLISH)

    def test_arte_por_estado(self):
        filenames = {state.background_filename for state in SentimentState}
        self.assertEqual(len(filenames), 5)
        self.assertEqual(SentimentState.STRONGLY_BEARISH.background_filename, "strongly-bearish.png")


# ---------------------------------------------------------------------------
# Geometria
# ---------------------------------------------------------------------------


class GeometryTest(SimpleTestCase):
    """Testes de compute_geometry."""

    def test_caixa_quadrada_de_600(self):
        geometry = compute_geometry(600, 600, RenderConfig(), 50)

        self.assertEqual(geometry.radius, 300)
        self.assertEqual((geometry.cx, geometry.cy), (300, 600))
        self.assertEqual(geometry.track_width, 33)
        self.assertEqual(geometry.value_width, 24)
        self.assertEqual((geometry.needle_inner, geometry.needle_outer), (210, 315))
        self.assertEqual(default_needle_radii(300), (210, 315))

    def test_escala_do_ponteiro_preserva_o_meio(self):
        config = RenderConfig.from_raw({"NEEDLE_LEN_SCALE": "2.0"})
        geometry = compute_geometry(600, 600, config, 50)

        self.assertAlmostEqual(geometry.needle_outer - geometry.needle_inner, 2 * (315 - 210))
        self.assertAlmostEqual((geometry.needle_outer + geometry.needle_inner) / 2, (315 + 210) / 2)
        self.assertEqual(scale_about_midpoint(210, 315, 1.0), (210, 315))

    def test_angulos_do_ponteiro(self):
        geometry = compute_geometry(600, 600, RenderConfig(), 0)
        self.assertAlmostEqual(geometry.needle_angle, math.pi)
        self.assertAlmostEqual(geometry.angle_for(100), 2 * math.pi)
        self.assertAlmostEqual(geometry.angle_for(50), 1.5 * math.pi)

    def test_ponteiro_vertical_no_meio(self):
        geometry = compute_geometry(600, 600, RenderConfig(), 50)
        self.assertAlmostEqual(geometry.needle_x1, 300)
        self.assertAlmostEqual(geometry.needle_y1, 600 - 210)
        self.assertAlmostEqual(geometry.needle_y2, 600 - 315)

    def test_centro_arredondado_meio_para_cima(self):
        geometry = compute_geometry(601, 600, RenderConfig(), 50)
        self.assertEqual(geometry.cx, 301)

    def test_caixa_vazia_tem_raio_minimo(self):
        config = RenderConfig.from_raw({"GAUGE_LEFT": "500", "GAUGE_RIGHT": "500"})
        geometry = compute_geometry(600, 600, config, 50)
        self.assertEqual(geometry.box.w, 0)
        self.assertEqual(geometry.radius, 1)
        self.assertEqual(geometry.track_width, 6)
        self.assertEqual(geometry.value_width, 4)
        self.assertEqual(geometry.needle_width, 2)


# ---------------------------------------------------------------------------
# Rampa de cores e fatias
# ---------------------------------------------------------------------------


def conic_color_at(stops, offset):
    for (o0, c0), (o1, c1) in zip(stops, stops[1:]):
        if offset <= o1:
            u = (offset - o0) / (o1 - o0)
            return tuple(a + (b - a) * u for a, b in zip(hex_to_rgb(c0), hex_to_rgb(c1)))
    return hex_to_rgb(stops[-1][1])


def max_slice_delta(count, cap_angle=0.04):
    """Maior diferença por canal entre as fatias e o gradiente cônico ao longo do trilho."""
    start, end = math.pi + cap_angle, 2 * math.pi
    stops = conic_stops(start, end)
    worst = 0.0
    for arc in value_arc_slices(start, end, end, count):
        actual = hex_to_rgb(arc.color)
        for k in range(25):
            angle = arc.start + (arc.end - arc.start) * k / 24
            expected = conic_color_at(stops, (angle - start) / (2 * math.pi))
            worst = max(worst, max(abs(a - e) for a, e in zip(actual, expected)))
    return worst


class RampTest(SimpleTestCase):
    """Testes da rampa vermelho -> laranja -> verde e das duas aproximações do arco."""

    def test_paradas_da_rampa(self):
        self.assertEqual(ramp_color(0), (217, 83, 79))
        self.assertEqual(ramp_color(0.5), (240, 173, 78))
        self.assertEqual(ramp_color(1), (92, 184, 92))
        self.assertEqual(ramp_color(-1), ramp_color(0))
        self.assertEqual(ramp_color(2), ramp_color(1))

    def test_extremos_iguais_nos_dois_backends(self):
        config = RenderConfig.from_raw(
            {"GAUGE_LEFT": "100", "GAUGE_RIGHT": "100", "GAUGE_TOP": "50", "GAUGE_BOTTOM": "50"}
        )
        background = GaugeImage(width=800, height=400, url="/static/assets/bullish.png")
        conic = [c for c in render_canvas_commands(GaugeScene(100, "", config, background)) if c["op"] == "conic_arc"][0]

        for count in (20, 24, 48):
            commands = GaugeRenderer(NoConicSurface, arc_slices=count).render(GaugeScene(100, "", config, background))
            cap = [c for c in commands if c["op"] == "arc" and c["cap"] == "round"][1]
            slices = [c for c in commands if c["op"] == "arc" and c["cap"] == "butt"]

            self.assertEqual(cap["color"], conic["stops"][0][1])
            self.assertEqual(slices[0]["color"], conic["stops"][0][1])
            self.assertEqual(slices[-1]["color"], conic["stops"][-1][1])
        self.assertEqual(conic["stops"][-1][1], "#5cb85c")

    def test_posicao_da_fatia_na_rampa(self):
        self.assertEqual(slice_ramp_position(0, 24), 0.0)
        self.assertAlmostEqual(slice_ramp_position(23, 24), 1.0)
        positions = [slice_ramp_position(i, 24) for i in range(24)]
        self.assertEqual(positions, sorted(positions))

    def test_paradas_comecam_no_inicio_da_rampa(self):
        stops = conic_stops(math.pi + 0.04, 2 * math.pi)
        self.assertEqual(stops[0][1], ramp_hex(0))
        self.assertEqual(stops[-1][1], ramp_hex(1))
        self.assertEqual(stops[0][1], RAMP_START_HEX)
        self.assertEqual(stops[0][0], 0.0)

    def test_paradas_escaladas_para_o_trilho(self):
        start, end = math.pi + 0.04, 2 * math.pi
        stops = conic_stops(start, end)
        fraction = (end - start) / (2 * math.pi)
        self.assertAlmostEqual(stops[1][0], 0.5 * fraction)
        self.assertAlmostEqual(stops[2][0], fraction)

    def test_fatias_cobrem_ate_theta_end(self):
        start, end = math.pi + 0.04, 2 * math.pi
        theta_end = 1.5 * math.pi
        slices = value_arc_slices(start, end, theta_end, 24)

        self.assertTrue(all(arc.start < theta_end for arc in slices))
        self.assertAlmostEqual(slices[-1].end, theta_end)
        self.assertAlmostEqual(slices[0].start, start)
        for previous, current in zip(slices, slices[1:]):
            self.assertAlmostEqual(previous.end, current.start)

    def test_minimo_de_20_fatias(self):
        start, end = math.pi, 2 * math.pi
        self.assertEqual(len(value_arc_slices(start, end, end, 5)), 20)
        self.assertEqual(len(value_arc_slices(start, end, end, 48)), 48)

    def test_cor_pela_posicao_no_trilho_inteiro(self):
        start, end = math.pi, 2 * math.pi
        full = value_arc_slices(start, end, end, 24)
        partial = value_arc_slices(start, end, 1.25 * math.pi, 24)
        self.assertEqual([arc.color for arc in partial], [arc.color for arc in full[: len(partial)]])

    def test_mais_fatias_aproximam_o_gradiente(self):
        deltas = [max_slice_delta(count) for count in (20, 40, 80, 160)]
        for previous, current in zip(deltas, deltas[1:]):
            self.assertLessEqual(current, previous)
        self.assertLess(deltas[-1], deltas[0])
        self.assertLess(deltas[-1], 3)


# ---------------------------------------------------------------------------
# Renderer - comandos do canvas
# ---------------------------------------------------------------------------


class CanvasRendererTest(SimpleTestCase):
    """Testes do renderer sobre a superfície de comandos."""

    def setUp(self):
        self.config = RenderConfig.from_raw(
            {"GAUGE_LEFT": "100", "GAUGE_RIGHT": "100", "GAUGE_TOP": "50", "GAUGE_BOTTOM": "50"}
        )
        self.background = GaugeImage(width=800, height=400, url="/static/assets/bullish.png")
        self.avatar = GaugeImage(width=96, height=96, url="/pfp")

    def test_ordem_das_camadas(self):
        scene = GaugeScene(75, "alice", self.config, self.background, self.avatar)
        commands = render_canvas_commands(scene)

        self.assertEqual(
            [c["op"] for c in commands],
            ["size", "image", "image", "text", "arc", "arc", "conic_arc", "line"],
        )
        self.assertEqual(commands[0], {"op": "size", "width": 800, "height": 400})
        self.assertEqual(commands[1]["src"], "/static/assets/bullish.png")
        self.assertEqual(commands[2]["src"], "/pfp")
        self.assertEqual(commands[3]["text"], "@alice")
        self.assertEqual(commands[4]["color"], "#090f00")
        self.assertEqual(commands[7]["color"], "#e6e6e8")

    def test_sem_username_nao_desenha_handle(self):
        commands = render_canvas_commands(GaugeScene(75, "", self.config, self.background))
        self.assertNotIn("text", [c["op"] for c in commands])

    def test_sem_fundo_usa_preenchimento_neutro(self):
        with self.assertLogs("gauge.renderer", level="WARNING"):
            commands = render_canvas_commands(GaugeScene(75, "alice", self.config))
        self.assertEqual(commands[0], {"op": "size", "width": DEFAULT_FRAME_SIZE[0], "height": DEFAULT_FRAME_SIZE[1]})
        self.assertEqual(commands[1], {"op": "fill", "color": NEUTRAL_FILL})

    def test_arco_curto_e_um_traco_vermelho(self):
        commands = render_canvas_commands(GaugeScene(0, "alice", self.config, self.background))
        arcs = [c for c in commands if c["op"] in ("arc", "conic_arc")]

        self.assertEqual(len(arcs), 2)
        self.assertEqual(arcs[1]["color"], RAMP_START_HEX)
        self.assertEqual(arcs[1]["cap"], "round")
        self.assertAlmostEqual(arcs[1]["start"], arcs[1]["end"])

    def test_gradiente_conico_comeca_no_fim_da_ponta(self):
        commands = render_canvas_commands(GaugeScene(100, "alice", self.config, self.background))
        cap, conic = commands[-3], commands[-2]

        self.assertEqual(conic["op"], "conic_arc")
        self.assertAlmostEqual(conic["gradient_start"], cap["end"])
        self.assertAlmostEqual(conic["start"], cap["end"])
        self.assertAlmostEqual(conic["end"], 2 * math.pi)
        self.assertEqual(conic["stops"][0][1], RAMP_START_HEX)

    def test_superficie_sem_conico_usa_fatias(self):
        renderer = GaugeRenderer(NoConicSurface, arc_slices=24)
        commands = renderer.render(GaugeScene(100, "alice", self.config, self.background))
        slices = [c for c in commands if c["op"] == "arc" and c["cap"] == "butt"]

        self.assertNotIn("conic_arc", [c["op"] for c in commands])
        self.assertEqual(len(slices), 24)
        self.assertAlmostEqual(slices[-1]["end"], 2 * math.pi)

    def test_idempotente(self):
        scene = GaugeScene(42, "alice", self.config, self.background, self.avatar)
        self.assertEqual(render_canvas_commands(scene), render_canvas_commands(scene))


# ---------------------------------------------------------------------------
# Renderer - raster (matplotlib/Agg)
# ---------------------------------------------------------------------------


class RasterRendererTest(SimpleTestCase):
    """Testes do render PNG no servidor."""

    def test_png_idempotente(self):
        pixels = decode_image(png_bytes((300, 150), (30, 60, 90, 255)))
        background = GaugeImage(width=300, height=150, pixels=pixels)
        scene = GaugeScene(64, "alice", RenderConfig(), background)

        first = render_png(scene)
        second = render_png(scene)

        self.assertTrue(first.startswith(b"\x89PNG"))
        self.assertEqual(first, second)

    def test_tamanho_do_quadro_segue_o_fundo(self):
        pixels = decode_image(png_bytes((300, 150)))
        scene = GaugeScene(64, "", RenderConfig(), GaugeImage(width=300, height=150, pixels=pixels))

        with Image.open(io.BytesIO(render_png(scene))) as img:
            self.assertLessEqual(abs(img.width - 300), 1)
            self.assertLessEqual(abs(img.height - 150), 1)

    def test_handle_alinhado_pelo_topo_do_em_box(self):
        surface = MatplotlibSurface(200, 100)
        surface.draw_text("@alice", 10, 20, 40, "#ffffff")
        text = surface.ax.texts[-1]
        ratio = em_ascent_ratio(surface.font_family)

        self.assertEqual(text.get_verticalalignment(), "baseline")
        self.assertAlmostEqual(text.get_position()[1], 20 + 40 * ratio)
        self.assertTrue(0.6 < ratio < 0.95)

    def test_sem_fundo_preenche_neutro_e_desenha_o_arco(self):
        scene = GaugeScene(100, "", RenderConfig())
        with self.assertLogs("gauge.renderer", level="WARNING"):
            png = render_png(scene, arc_slices=24)

        with Image.open(io.BytesIO(png)) as img:
            rgb = img.convert("RGB")
            self.assertLessEqual(abs(rgb.width - DEFAULT_FRAME_SIZE[0]), 1)
            self.assertEqual(rgb.getpixel((5, 5)), hex_to_rgb(NEUTRAL_FILL))

            # Topo do arco: r=600, centro (600, 628)
            top = rgb.getpixel((600, 28))
        geometry = compute_geometry(*DEFAULT_FRAME_SIZE, RenderConfig(), 100)
        cap_end = geometry.start_angle + geometry.cap_angle
        slice_at_top = next(
            arc
            for arc in value_arc_slices(cap_end, geometry.end_angle, geometry.end_angle, 24)
            if arc.start <= 1.5 * math.pi <= arc.end
        )
        for channel, expected in zip(top, hex_to_rgb(slice_at_top.color)):
            self.assertLessEqual(abs(channel - expected), 3)


# ---------------------------------------------------------------------------
# Assets
# ---------------------------------------------------------------------------


class AssetsTest(SimpleTestCase):
    """Testes de carregamento de imagens."""

    def setUp(self):
        self.tmpdir = Path(tempfile.mkdtemp())
        self.addCleanup(shutil.rmtree, self.tmpdir, True)

    def test_imagem_corrompida_devolve_none(self):
        with self.assertLogs("gauge.assets", level="WARNING"):
            self.assertIsNone(decode_image(b"not an image", label="avatar"))

    def test_fundo_ausente_devolve_none(self):
        with self.assertLogs("gauge.assets", level="WARNING"):
            self.assertIsNone(load_background(self.tmpdir / "missing.png"))

    def test_fundo_sem_pixels_para_o_canvas(self):
        path = self.tmpdir / "bg.png"
        path.write_bytes(png_bytes((120, 60)))

        image = load_background(path, url="/static/assets/bg.png", with_pixels=False)

        self.assertEqual((image.width, image.height), (120, 60))
        self.assertIsNone(image.pixels)
        self.assertEqual(image.url, "/static/assets/bg.png")

    @patch("gauge.assets.requests.get")
    def test_avatar_com_falha_de_rede_e_omitido(self, mock_get):
        from gauge.assets import fetch_avatar

        mock_get.side_effect = requests.ConnectionError("boom")
        with self.assertLogs("gauge.assets", level="WARNING"):
            self.assertIsNone(fetch_avatar("https://pbs.twimg.com/a.jpg", user_agent="test"))

    @patch("gauge.assets.requests.get")
    def test_avatar_valido(self, mock_get):
        from gauge.assets import fetch_avatar

        mock_get.return_value = MagicMock(ok=True, status_code=200, content=png_bytes((50, 50)))
        avatar = fetch_avatar("https://pbs.twimg.com/a.jpg", user_agent="test")

        self.assertEqual((avatar.width, avatar.height), (50, 50))
        self.assertEqual(avatar.pixels.shape, (50, 50, 4))


# ---------------------------------------------------------------------------
# Views
# ---------------------------------------------------------------------------


SESSION_USER = {
    "user_id": "42",
    "username": "alice",
    "profile_image_url": "",
    "access_token": "token",
}


class GaugeViewTestMixin:
    def setUp(self):
        super().setUp()
        self.tmpdir = Path(tempfile.mkdtemp())
        self.addCleanup(shutil.rmtree, self.tmpdir, True)
        # tmpdir faz o papel de diretório de estáticos; a arte fica em tmpdir/assets
        self.assets_dir = self.tmpdir / "assets"
        self.assets_dir.mkdir()
        write_state_art(self.assets_dir)
        override = override_settings(ASSETS_DIR=self.assets_dir, STATICFILES_DIRS=[self.tmpdir])
        override.enable()
        self.addCleanup(override.disable)


class LandingViewTest(SimpleTestCase):
    """Testes da LandingView."""

    def test_anonimo_ve_a_landing(self):
        response = self.client.get(reverse("gauge:landing"))

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, reverse("x:login"))

    def test_logado_redireciona_para_fetch(self):
        set_session(self.client, x_user=SESSION_USER)

        response = self.client.get(reverse("gauge:landing"))

        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.url, reverse("gauge:fetch"))


class FetchViewTest(GaugeViewTestMixin, SimpleTestCase):
    """Testes da FetchView."""

    def test_anonimo_redireciona_para_login(self):
        response = self.client.get(reverse("gauge:fetch"))
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.url, reverse("x:login"))

    @patch("gauge.views.submit_posts_for_scoring")
    @patch("gauge.views.fetch_recent_posts")
    def test_score_renderiza_card_raster(self, mock_posts, mock_submit):
        mock_posts.return_value = [{"id": "1"}, {"id": "2"}, {"id": "3"}]
        payload = [{"Positive": 2, "Neutral": 1, "Negative": 0}, {"Positive": 1, "Neutral": 0, "Negative": 0}]
        mock_submit.return_value = WebhookResult(raw_text="[...]", payload=payload)
        set_session(self.client, x_user=SESSION_USER)

        response = self.client.get(reverse("gauge:fetch"))

        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "gauge/gauge_card.html")
        self.assertContains(response, reverse("gauge:card_png"))
        # (3 - 0 + 4) / 8 * 100 = 87.5 -> 88
        self.assertEqual(response.context["score"], 88)
        self.assertEqual(self.client.session[RENDER_CONTEXT_KEY]["score"], 88)
        self.assertEqual(self.client.session[RENDER_CONTEXT_KEY]["username"], "alice")

    @override_settings(GAUGE_RENDER_MODE="canvas")
    @patch("gauge.views.submit_posts_for_scoring")
    @patch("gauge.views.fetch_recent_posts")
    def test_modo_canvas_embute_comandos(self, mock_posts, mock_submit):
        mock_posts.return_value = [{"id": "1"}]
        mock_submit.return_value = WebhookResult(raw_text="{}", payload={"Positive": 1, "Neutral": 1})
        user = dict(SESSION_USER, profile_image_url="https://pbs.twimg.com/a_400x400.jpg")
        set_session(self.client, x_user=user)

        response = self.client.get(reverse("gauge:fetch"))

        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "gauge/gauge_canvas.html")
        self.assertContains(response, 'id="gauge-commands"')
        commands = response.context["commands"]
        self.assertEqual(commands[0], {"op": "size", "width": 800, "height": 400})
        self.assertTrue(commands[1]["src"].endswith("assets/bullish.png"))
        self.assertEqual(commands[2]["src"], reverse("gauge:pfp"))

    @patch("gauge.views.submit_posts_for_scoring")
    @patch("gauge.views.fetch_recent_posts")
    def test_resposta_nao_json_mostra_diagnostico_escapado(self, mock_posts, mock_submit):
        mock_posts.return_value = [{"id": "1"}]
        mock_submit.return_value = WebhookResult(raw_text="<b>oops</b>", payload=None, parsed=False)
        set_session(self.client, x_user=SESSION_USER)

        response = self.client.get(reverse("gauge:fetch"))

        self.assertEqual(response.status_code, 200)
        self.assertTemplateUsed(response, "gauge/fetch_fallback.html")
        self.assertContains(response, "&lt;b&gt;oops&lt;/b&gt;")
        self.assertNotContains(response, "<b>oops</b>")
        self.assertNotIn(RENDER_CONTEXT_KEY, self.client.session)

    @patch("gauge.views.submit_posts_for_scoring")
    @patch("gauge.views.fetch_recent_posts")
    def test_tallies_zerados_sem_posts_nao_viram_50(self, mock_posts, mock_submit):
        mock_posts.return_value = []
        mock_submit.return_value = WebhookResult(
            raw_text='{"Positive":0,"Neutral":0,"Negative":0}',
            payload={"Positive": 0, "Neutral": 0, "Negative": 0},
        )
        set_session(self.client, x_user=SESSION_USER)

        response = self.client.get(reverse("gauge:fetch"))

        self.assertTemplateUsed(response, "gauge/fetch_fallback.html")

    @override_settings(SCORE_COUNT_FALLBACK=True)
    @patch("gauge.views.submit_posts_for_scoring")
    @patch("gauge.views.fetch_recent_posts")
    def test_tallies_zerados_com_posts_usam_fallback(self, mock_posts, mock_submit):
        mock_posts.return_value = [{"id": "1"}, {"id": "2"}]
        mock_submit.return_value = WebhookResult(raw_text="{}", payload={})
        set_session(self.client, x_user=SESSION_USER)

        with self.assertLogs("gauge.views", level="WARNING"):
            response = self.client.get(reverse("gauge:fetch"))

        self.assertEqual(response.context["score"], 50)
        self.assertTrue(response.context["from_fallback"])

    @override_settings(SCORE_COUNT_FALLBACK=True)
    @patch("gauge.views.submit_posts_for_scoring")
    @patch("gauge.views.fetch_recent_posts")
    def test_json_null_com_posts_usa_fallback(self, mock_posts, mock_submit):
        mock_posts.return_value = [{"id": "1"}, {"id": "2"}]
        mock_submit.return_value = WebhookResult(raw_text="null", payload=None, parsed=True)
        set_session(self.client, x_user=SESSION_USER)

        with self.assertLogs("gauge.views", level="WARNING"):
            response = self.client.get(reverse("gauge:fetch"))

        self.assertTemplateUsed(response, "gauge/gauge_card.html")
        self.assertEqual(response.context["score"], 50)

    @patch("gauge.views.submit_posts_for_scoring")
    @patch("gauge.views.fetch_recent_posts")
    def test_falha_no_webhook_retorna_500(self, mock_posts, mock_submit):
        mock_posts.return_value = [{"id": "1"}]
        mock_submit.side_effect = ScoringWebhookError("down")
        set_session(self.client, x_user=SESSION_USER)

        with self.assertLogs("gauge.views", level="ERROR"):
            response = self.client.get(reverse("gauge:fetch"))

        self.assertEqual(response.status_code, 500)


class CardPngViewTest(GaugeViewTestMixin, SimpleTestCase):
    """Testes da view /card.png."""

    def _set_context(self, score=30, ts=None):
        context = RenderContext(score=score, username="alice", created_at=ts or time.time())
        set_session(self.client, **{RENDER_CONTEXT_KEY: context.as_session()})

    def test_sem_contexto_retorna_400(self):
        response = self.client.get(reverse("gauge:card_png"))
        self.assertEqual(response.status_code, 400)

    def test_contexto_expirado_retorna_400(self):
        self._set_context(ts=time.time() - RENDER_CONTEXT_TTL - 10)
        response = self.client.get(reverse("gauge:card_png"))
        self.assertEqual(response.status_code, 400)

    def test_renderiza_png(self):
        self._set_context()

        response = self.client.get(reverse("gauge:card_png"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response["Content-Type"], "image/png")
        self.assertEqual(response["Cache-Control"], "private, max-age=120")
        self.assertNotIn("Content-Disposition", response)
        with Image.open(io.BytesIO(response.content)) as img:
            self.assertLessEqual(abs(img.width - 800), 1)
            # score 30 -> bearish
            corner = img.convert("RGB").getpixel((3, 3))
        for channel, expected in zip(corner, STATE_COLORS[SentimentState.BEARISH][:3]):
            self.assertLessEqual(abs(channel - expected), 2)

    def test_download_com_dl(self):
        self._set_context()

        response = self.client.get(reverse("gauge:card_png") + "?dl=1")

        self.assertIn("attachment", response["Content-Disposition"])
        self.assertIn("sentiment-gauge-alice.png", response["Content-Disposition"])

    @patch("gauge.views.render_card_png")
    def test_falha_no_render_retorna_500(self, mock_render):
        mock_render.side_effect = RuntimeError("boom")
        self._set_context()

        with self.assertLogs("gauge.views", level="ERROR"):
            response = self.client.get(reverse("gauge:card_png"))

        self.assertEqual(response.status_code, 500)


class AvatarProxyViewTest(SimpleTestCase):
    """Testes do proxy /pfp."""

    def setUp(self):
        self.user = dict(SESSION_USER, profile_image_url="https://pbs.twimg.com/a_400x400.jpg")

    def test_sem_url_retorna_404(self):
        set_session(self.client, x_user=SESSION_USER)
        response = self.client.get(reverse("gauge:pfp"))
        self.assertEqual(response.status_code, 404)

    @patch("gauge.views.requests.get")
    def test_repassa_imagem(self, mock_get):
        mock_get.return_value = MagicMock(
            ok=True, status_code=200, content=b"jpeg-bytes", headers={"content-type": "image/jpeg"}
        )
        set_session(self.client, x_user=self.user)

        response = self.client.get(reverse("gauge:pfp"))

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b"jpeg-bytes")
        self.assertEqual(response["Content-Type"], "image/jpeg")
        self.assertEqual(response["Cache-Control"], "private, max-age=300")
        self.assertEqual(mock_get.call_args.kwargs["headers"]["User-Agent"], settings.X_USER_AGENT)

    @patch("gauge.views.requests.get")
    def test_upstream_com_erro_retorna_502(self, mock_get):
        mock_get.return_value = MagicMock(ok=False, status_code=404, headers={})
        set_session(self.client, x_user=self.user)

        with self.assertLogs("gauge.views", level="WARNING"):
            response = self.client.get(reverse("gauge:pfp"))

        self.assertEqual(response.status_code, 502)

    @patch("gauge.views.requests.get")
    def test_falha_de_rede_retorna_502(self, mock_get):
        mock_get.side_effect = requests.Timeout("slow")
        set_session(self.client, x_user=self.user)

        with self.assertLogs("gauge.views", level="WARNING"):
            response = self.client.get(reverse("gauge:pfp"))

        self.assertEqual(response.status_code, 502)


class HealthzViewTest(SimpleTestCase):
    def test_ok(self):
        response = self.client.get(reverse("gauge:healthz"))
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b"ok")


class BackgroundUrlTest(GaugeViewTestMixin, SimpleTestCase):
    """Testes da URL da arte usada pelo canvas."""

    def test_url_segue_a_posicao_de_assets_dir(self):
        self.assertTrue(background_url(SentimentState.BULLISH).endswith("/assets/bullish.png"))

    def test_prefixo_de_staticfiles_dirs(self):
        with override_settings(STATICFILES_DIRS=[("art", self.tmpdir)]):
            url = background_url(SentimentState.BULLISH)
        self.assertTrue(url.endswith("/art/assets/bullish.png"))

    def test_assets_dir_fora_dos_estaticos(self):
        with override_settings(STATICFILES_DIRS=[], STATIC_ROOT=None):
            with self.assertLogs("gauge.services", level="WARNING"):
                self.assertEqual(background_url(SentimentState.BULLISH), "")


# ---------------------------------------------------------------------------
# Management command
# ---------------------------------------------------------------------------


class RenderGaugeCommandTest(GaugeViewTestMixin, SimpleTestCase):
    """Testes do comando render_gauge."""

    def test_gera_png(self):
        output = self.tmpdir / "out.png"
        stdout = io.StringIO()

        call_command("render_gauge", score=73, username="@alice", output=str(output), stdout=stdout)

        self.assertTrue(output.read_bytes().startswith(b"\x89PNG"))
        self.assertIn("bullish", stdout.getvalue())

    def test_gera_comandos_json(self):
        output = self.tmpdir / "out.json"

        call_command("render_gauge", score=10, output=str(output), format="commands", stdout=io.StringIO())

        content = output.read_text(encoding="utf-8")
        self.assertIn('"op": "size"', content)
        self.assertNotIn('"op": "text"', content)

    def test_comandos_json_mantem_a_arte_de_fundo(self):
        output = self.tmpdir / "out.json"
        avatar = self.tmpdir / "avatar.png"
        avatar.write_bytes(png_bytes((64, 64)))

        call_command(
            "render_gauge",
            score=50,
            username="alice",
            avatar=str(avatar),
            output=str(output),
            format="commands",
            stdout=io.StringIO(),
        )

        commands = json.loads(output.read_text(encoding="utf-8"))
        self.assertEqual(commands[0], {"op": "size", "width": 800, "height": 400})
        self.assertEqual(commands[1]["op"], "image")
        self.assertTrue(commands[1]["src"].endswith("assets/neutral.png"))
        self.assertEqual(commands[2]["op"], "image")
        self.assertTrue(commands[2]["src"].startswith("file://"))

    def test_score_fora_da_faixa(self):
        with self.assertRaises(CommandError):
            call_command("render_gauge", score=150, output=str(self.tmpdir / "x.png"))
