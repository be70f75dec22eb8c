import logging
from pathlib import Path
from typing import Any, Optional

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"


def _join(values: Any, separator: str = ", ") -> str:
    if not values:
        return ""
    return separator.join(str(value) for value in values)


class SummaryRenderer:
    """
    Renders the Jinja2 text summaries that are fed back into prompts.
    """
    def __init__(self, template_dir: Optional[Path] = None):
        """Initializes the SummaryRenderer."""
        directory = Path(template_dir) if template_dir else TEMPLATE_DIR
        if not directory.exists():
            logger.error("Summary template directory not found at: %s", directory)
            raise FileNotFoundError(f"Summary template directory not found: {directory}")

        # Plain-text output for prompts, so no HTML autoescaping.
        self.env = Environment(
            loader=FileSystemLoader(directory),
            autoescape=False,
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=False,
        )
        self.env.filters["join_list"] = _join
        logger.debug("SummaryRenderer initialized from %s", directory)

    def render(self, template_name: str, **kwargs: Any) -> str:
        """
        Renders a summary template with the given context.

        Args:
            template_name: The name of the template file (e.g., 'context_summary.jinja2').
            **kwargs: The context variables to pass to the template.

        Returns:
            The rendered text, stripped of surrounding whitespace.

        Raises:
            jinja2.TemplateError: If the template is missing or fails to render.
        """
        try:
            template = self.env.get_template(template_name)
            return template.render(**kwargs).strip()
        except TemplateError as e:
            logger.error("Failed to render summary template '%s': %s", template_name, e, exc_info=True)
            raise
