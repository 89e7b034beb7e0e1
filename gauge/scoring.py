# Agrega os tallies do webhook de sentimento em um score normalizado (0-100)
import math
from dataclasses import dataclass
from numbers import Real
from typing import Any, Iterable, Optional

from .utils import clamp, round_half_up

# Chaves enviadas pelo scorer externo (capitalizadas) e variantes minúsculas
_FIELD_KEYS = {
    "positive": ("Positive", "positive"),
    "neutral": ("Neutral", "neutral"),
    "negative": ("Negative", "negative"),
}


@dataclass(frozen=True)
class SentimentTally:
    """Contagem de posts positivos/neutros/negativos devolvida pelo scorer."""

    positive: float = 0
    neutral: float = 0
    negative: float = 0

    @property
    def total(self) -> float:
        return self.positive + self.neutral + self.negative

    def __add__(self, other: "SentimentTally") -> "SentimentTally":
        return SentimentTally(
            positive=self.positive + other.positive,
            neutral=self.neutral + other.neutral,
            negative=self.negative + other.negative,
        )

    @classmethod
    def from_payload(cls, obj: Any) -> "SentimentTally":
        """Lê um objeto do scorer; campos ausentes ou malformados contam como 0."""
        if not isinstance(obj, dict):
            return cls()
        values = {name: _read_count(obj, keys) for name, keys in _FIELD_KEYS.items()}
        return cls(**values)


@dataclass(frozen=True)
class ScoreResult:
    """Score normalizado ou ausência explícita de score (value=None)."""

    value: Optional[int]
    from_fallback: bool = False

    @property
    def available(self) -> bool:
        return self.value is not None

    @classmethod
    def unavailable(cls) -> "ScoreResult":
        return cls(value=None)


def _read_count(obj: dict, keys: Iterable[str]) -> float:
    for key in keys:
        if key not in obj:
            continue
        value = obj[key]
        # bool é subclasse de int, mas não é contagem
        if isinstance(value, bool) or not isinstance(value, Real):
            return 0
        if not math.isfinite(value) or value < 0:
            return 0
        return value
    return 0


def merge_tallies(payload: Any) -> SentimentTally:
    """Soma os tallies de um objeto único ou de uma lista de objetos (um por item pontuado)."""
    items = payload if isinstance(payload, (list, tuple)) else [payload]
    merged = SentimentTally()
    for item in items:
        merged = merged + SentimentTally.from_payload(item)
    return merged


def normalized_score(tally: SentimentTally, total: Optional[float] = None) -> int:
    """
    Índice de polaridade: tudo negativo -> 0, tudo neutro -> 50, tudo positivo -> 100.

    score = round(((P - Neg + T) / (2T)) * 100), preso em [0, 100].
    """
    total = tally.total if total is None else total
    if total <= 0:
        raise ValueError("total deve ser positivo para normalizar o score")
    raw = ((tally.positive - tally.negative + total) / (2 * total)) * 100
    return int(clamp(round_half_up(raw), 0, 100))


def aggregate_score(
    payload: Any,
    submitted_count: int = 0,
    *,
    allow_count_fallback: bool = True,
) -> ScoreResult:
    """
    Reduz o payload do scorer a um ScoreResult.

    Com T == 0, usa a quantidade de posts enviados como total (comportamento legado,
    resultando em 50) e marca o resultado como fallback; sem posts, o score é indisponível.
    """
    tally = merge_tallies(payload)
    if tally.total > 0:
        return ScoreResult(value=normalized_score(tally))

    if allow_count_fallback and submitted_count > 0:
        return ScoreResult(value=normalized_score(tally, total=submitted_count), from_fallback=True)

    return ScoreResult.unavailable()
