from rich.console import Console
from rich.theme import Theme

THEME = Theme(
    {
        "info": "blue",
        "success": "bold green",
        "warning": "bold yellow",
        "error": "bold red",
        "label": "cyan",
        "dim": "dim",
    }
)


def make_console(**kwargs) -> Console:
    return Console(theme=THEME, highlight=False, **kwargs)
