"""traitmatch visualization library.

Modules:
  - style: Dark theme colours and helpers
  - fit: Fitted relationships, probability surfaces, likelihood bars
"""

from traitmatch.viz.style import (  # noqa: F401
    ACCENT_COLORS,
    DARK_BG,
    DARK_PANEL,
    GRID_COLOR,
    MODEL_COLORS,
    TEXT_COLOR,
    apply_dark_theme,
    dark_figure,
    save_figure,
)

from traitmatch.viz.fit import (  # noqa: F401
    plot_interaction_surface,
    plot_likelihood_comparison,
    plot_pred,
)
