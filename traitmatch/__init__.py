"""traitmatch: neutral, niche and integrated trait-matching models.

Fits competing explanations for why species interact (predator-prey,
plant-pollinator, host-parasitoid, ...) to paired trait data:
  - Neutral: interactions track the background abundance of partner-1 traits
  - Niche: partner-2 traits follow a trait-matching relationship to partner 1
  - Integrated: both at once (product of densities)

Parameters are found by bounded simulated annealing under a wall-clock
budget; models are compared by their log-likelihoods.
"""

from traitmatch.fitting import compare_models, fit_it, fit_model  # noqa: F401
from traitmatch.likelihood import (  # noqa: F401
    get_model,
    integrated_model,
    neutral_model,
    niche_model,
)
from traitmatch.prediction import interaction_probability, predict_niche  # noqa: F401
from traitmatch.stats import background_summary, weighted_mean, weighted_sd  # noqa: F401
from traitmatch.types import (  # noqa: F401
    BackgroundSummary,
    DegenerateWeights,
    FitResult,
    InteractionData,
    InvalidBounds,
    InvalidInput,
    ModelKind,
    ParamBounds,
    TraitParams,
)

__version__ = "0.1.0"
