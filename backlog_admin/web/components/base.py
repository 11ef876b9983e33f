"""
Base Component class for the console UI.

Pages are assembled from small Python objects that return HTML strings. All
dynamic text goes through `escape`, so components are safe to feed with
backend data.
"""

from typing import Any, Optional
import html


class Component:
    """Base class for all UI components."""

    def render(self) -> str:
        raise NotImplementedError("Subclasses must implement render()")

    @staticmethod
    def escape(text: Optional[Any]) -> str:
        """Escape HTML entities; None renders as an empty string."""
        return html.escape(str(text)) if text is not None else ""

    @staticmethod
    def day(timestamp: Optional[str]) -> str:
        """Calendar day of an ISO timestamp (`2025-03-31T00:00:00Z` -> `2025-03-31`)."""
        return (timestamp or "").split("T", 1)[0].strip()

    @staticmethod
    def classes(*args: str, **conditionals: bool) -> str:
        """Build a class string: `classes("badge", "badge--blue", muted=True)`."""
        names = [name for name in args if name]
        names.extend(key.replace("_", "-") for key, value in conditionals.items() if value)
        return " ".join(names)

    @staticmethod
    def attributes(**attrs: Any) -> str:
        """Build HTML attributes from keyword arguments.

        `class_` -> `class`, `data_id` -> `data-id`; True renders a boolean
        attribute, False/None drop the attribute.
        """
        result = []
        for key, value in attrs.items():
            if key.endswith("_"):
                key = key[:-1]
            else:
                key = key.replace("_", "-")

            if value is True:
                result.append(key)
            elif value is not False and value is not None:
                result.append(f'{key}="{html.escape(str(value))}"')

        return " ".join(result)

    @classmethod
    def hidden_inputs(cls, values: dict) -> str:
        """Hidden form fields for every non-None value."""
        return "".join(
            f"<input {cls.attributes(type='hidden', name=name, value=value)}>"
            for name, value in values.items()
            if value is not None
        )
