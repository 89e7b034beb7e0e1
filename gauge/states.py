# Classifica o score em uma das cinco faixas de sentimento e resolve a arte de fundo
from enum import Enum

from .config import Thresholds
from .utils import clamp


class SentimentState(str, Enum):
    STRONGLY_BEARISH = "strongly-bearish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"
    BULLISH = "bullish"
    STRONGLY_BULLISH = "strongly-bullish"

    @property
    def background_filename(self) -> str:
        """Arquivo de arte correspondente (ex.: 'strongly-bearish.png')."""
        return f"{self.value}.png"


def classify(score: float, thresholds: Thresholds) -> SentimentState:
    """
    Faixas semiabertas: [0,t1) [t1,t2) [t2,t3) [t3,t4) e [t4,100].

    Faixas de largura zero (limites iguais) nunca casam e são puladas.
    """
    s = clamp(score, 0, 100)
    t1, t2, t3, t4 = thresholds.as_tuple()

    if s >= t4:
        return SentimentState.STRONGLY_BULLISH
    bands = (
        (t1, t2, SentimentState.BEARISH),
        (t2, t3, SentimentState.NEUTRAL),
        (t3, t4, SentimentState.BULLISH),
    )
    for low, high, state in bands:
        if low <= s < high:
            return state
    return SentimentState.STRONGLY_BEARISH
