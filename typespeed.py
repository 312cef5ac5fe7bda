from __future__ import annotations

import argparse
import json
import os
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Tuple, Union

try:
    from loguru import logger
    from rich.console import Console
    from rich.text import Text
    from textual import events
    from textual.app import App, ComposeResult
    from textual.containers import Container, VerticalScroll
    from textual.widgets import Static
except ModuleNotFoundError as exc:
    missing = getattr(exc, "name", "")
    hint = "python3 -m pip install -U loguru rich textual"
    print(f"Missing dependency '{missing}'. Install with: {hint}")
    raise SystemExit(1) from exc


# ---------------------------
# Paths, config and logging
# ---------------------------

def _default_data_dir() -> Path:
    """
    Local-only log storage:
    - macOS: ~/Library/Application Support/typespeed
    - Linux: $XDG_DATA_HOME/typespeed or ~/.local/share/typespeed
    """
    home = Path.home()
    if sys_platform() == "darwin":
        return home / "Library" / "Application Support" / "typespeed"
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return Path(xdg) / "typespeed"
    return home / ".local" / "share" / "typespeed"


def sys_platform() -> str:
    # os.uname exists on Unix only
    if hasattr(os, "uname"):
        return os.uname().sysname.lower()
    return os.name.lower()


LOG_PATH = _default_data_dir() / "typespeed.log"
CONFIG_PATH = Path(
    os.environ.get("TYPESPEED_CONFIG", Path(__file__).resolve().parent / "typespeed.config.json")
)

DEFAULT_WORD_TARGET = 30
LINE_LEN = 10
POLL_INTERVAL = 0.05
LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL")


def configure_logging(level: str = "INFO", path: Path = LOG_PATH) -> None:
    """Send log records to a rotating file; stdout belongs to the typing screen."""
    env_level = os.getenv("TYPESPEED_LOG_LEVEL", "").upper()
    unknown = env_level and env_level not in LOG_LEVELS
    level = level.upper() if unknown or not env_level else env_level
    logger.remove()
    logger.add(
        path,
        level=level,
        rotation="1 MB",
        retention=3,
        backtrace=os.getenv("LOG_BACKTRACE", "0") == "1",
        diagnose=os.getenv("LOG_DIAGNOSE", "0") == "1",
    )
    if unknown:
        logger.warning("Ignoring unknown TYPESPEED_LOG_LEVEL {!r}, using {}", env_level, level)


def load_config(path: Path = CONFIG_PATH) -> Dict[str, object]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable config {}: {}", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring config {}: top level must be an object", path)
        return {}
    return data


# ---------------------------
# Word source (offline)
# ---------------------------

# The 200 most common English words
WORDS: Tuple[str, ...] = (
    "the", "be", "of", "and", "a", "to", "in", "he", "have", "it",
    "that", "for", "they", "I", "with", "as", "not", "on", "she", "at",
    "by", "this", "we", "you", "do", "but", "from", "or", "which", "one",
    "would", "all", "will", "there", "say", "who", "make", "when", "can", "more",
    "if", "no", "man", "out", "other", "so", "what", "time", "up", "go",
    "about", "than", "into", "could", "state", "only", "new", "year", "some", "take",
    "come", "these", "know", "see", "use", "get", "like", "then", "first", "any",
    "work", "now", "may", "such", "give", "over", "think", "most", "even", "find",
    "day", "also", "after", "way", "many", "must", "look", "before", "great", "back",
    "through", "long", "where", "much", "should", "well", "people", "down", "own", "just",
    "because", "good", "each", "those", "feel", "seem", "how", "high", "too", "place",
    "little", "world", "very", "still", "nation", "hand", "old", "life", "tell", "write",
    "become", "here", "show", "house", "both", "between", "need", "mean", "call", "develop",
    "under", "last", "right", "move", "thing", "general", "school", "never", "same", "another",
    "begin", "while", "number", "part", "turn", "real", "leave", "might", "want", "point",
    "form", "off", "child", "few", "small", "since", "against", "ask", "late", "home",
    "interest", "large", "person", "end", "open", "public", "follow", "during", "present", "without",
    "again", "hold", "govern", "around", "possible", "head", "consider", "word", "program", "problem",
    "however", "lead", "system", "set", "order", "eye", "plan", "run", "keep", "face",
    "fact", "group", "play", "stand", "increase", "early", "course", "change", "help", "line",
)


class WordSource:
    """Draws words uniformly, with replacement, from a fixed corpus."""

    def __init__(self, words: Sequence[str] = WORDS, rng: Optional[random.Random] = None) -> None:
        if not words:
            raise ValueError("word corpus is empty")
        self.words: Tuple[str, ...] = tuple(words)
        self._rng = rng or random.Random()

    def next_word(self) -> str:
        return self._rng.choice(self.words)

    def next_line(self, word_count: int = LINE_LEN) -> str:
        return " ".join(self._rng.choices(self.words, k=word_count))


# ---------------------------
# Styles and themes
# ---------------------------

class CharStyle(str, Enum):
    UNTOUCHED = "untouched"
    CORRECT = "correct"
    ERROR = "error"
    CORRECT_SPACE = "correct_space"
    ERROR_SPACE = "error_space"


def gray(x: int) -> str:
    """A colour where the r, g and b values are all x."""
    return f"rgb({x},{x},{x})"


THEMES: Dict[str, Dict[str, str]] = {
    "mono": {
        "untouched": gray(100),
        "correct": gray(255),
        "error": "rgb(230,0,0)",
        "correct_space": f"on {gray(255)}",
        "error_space": "on rgb(230,0,0)",
        "cursor": "reverse",
        "muted": gray(100),
        "title": gray(255),
        "card_bg": "transparent",
        "border": gray(60),
    },
    "slate": {
        "untouched": "#64748b",
        "correct": "#a7f3d0",
        "error": "#fca5a5",
        "correct_space": "on #a7f3d0",
        "error_space": "on #fb7185",
        "cursor": "reverse",
        "muted": "#64748b",
        "title": "#e5e7eb",
        "card_bg": "#111827",
        "border": "#1f2937",
    },
    "ember": {
        "untouched": "#d6a08a",
        "correct": "#fcd34d",
        "error": "#f87171",
        "correct_space": "on #fde68a",
        "error_space": "on #fb7185",
        "cursor": "reverse",
        "muted": "#d6a08a",
        "title": "#fef3c7",
        "card_bg": "#1f140f",
        "border": "#3b1d14",
    },
    "mint": {
        "untouched": "#7dd3c7",
        "correct": "#a7f3d0",
        "error": "#fb7185",
        "correct_space": "on #5eead4",
        "error_space": "on #fb7185",
        "cursor": "reverse",
        "muted": "#7dd3c7",
        "title": "#d1fae5",
        "card_bg": "#0b1f24",
        "border": "#12323a",
    },
}


@dataclass
class Settings:
    word_target: int = DEFAULT_WORD_TARGET
    theme_name: str = "mono"
    palettes: Dict[str, Dict[str, str]] = field(default_factory=lambda: dict(THEMES))
    log_level: str = "INFO"

    @property
    def palette(self) -> Dict[str, str]:
        return self.palettes[self.theme_name]

    @classmethod
    def from_config(cls, config: Dict[str, object]) -> Settings:
        settings = cls()
        extra_themes = config.get("themes")
        if isinstance(extra_themes, dict):
            for name, colors in extra_themes.items():
                if isinstance(colors, dict):
                    settings.palettes[name] = {**settings.palettes["mono"], **colors}
        theme_name = str(config.get("theme", settings.theme_name))
        if theme_name in settings.palettes:
            settings.theme_name = theme_name
        try:
            words = int(config.get("words", settings.word_target))
        except (TypeError, ValueError):
            words = DEFAULT_WORD_TARGET
        settings.word_target = words if words > 0 else DEFAULT_WORD_TARGET
        log_level = str(config.get("log_level", settings.log_level)).upper()
        if log_level in LOG_LEVELS:
            settings.log_level = log_level
        return settings


# ---------------------------
# Rendering surface
# ---------------------------

class Surface(Protocol):
    """What a line needs from the screen to draw itself."""

    def clear(self) -> None: ...

    def move_cursor_to(self, col: int, row: int) -> None: ...

    def next_line(self) -> None: ...

    def draw_char(self, ch: str, style: CharStyle) -> None: ...

    def flush(self) -> None: ...


class TextSurface:
    """
    Queues styled cells row by row and turns them into one rich Text on flush.

    The cursor cell is drawn with the palette's cursor style; when the cursor
    sits past the last cell of its row a blank cell is added for it.
    """

    def __init__(
        self,
        palette: Dict[str, str],
        on_flush: Optional[Callable[[Text], None]] = None,
    ) -> None:
        self.palette = palette
        self.on_flush = on_flush
        self.rows: List[List[Tuple[str, CharStyle]]] = [[]]
        self.cursor: Tuple[int, int] = (0, 0)
        self.text = Text()

    def clear(self) -> None:
        self.rows = [[]]
        self.cursor = (0, 0)

    def move_cursor_to(self, col: int, row: int) -> None:
        self.cursor = (col, row)

    def next_line(self) -> None:
        self.rows.append([])

    def draw_char(self, ch: str, style: CharStyle) -> None:
        self.rows[-1].append((ch, style))

    def flush(self) -> None:
        rows = self.rows
        col, row = self.cursor
        # every drawn line ends with next_line(), leaving an empty row behind
        if len(rows) > 1 and not rows[-1] and row < len(rows) - 1:
            rows = rows[:-1]
        cursor_style = self.palette["cursor"]
        text = Text()
        for y, cells in enumerate(rows):
            if y:
                text.append("\n")
            for x, (ch, style) in enumerate(cells):
                rich_style = self.palette[style.value]
                if (x, y) == (col, row):
                    rich_style = f"{rich_style} {cursor_style}"
                text.append(ch, style=rich_style)
            if y == row and col >= len(cells):
                text.append(" ", style=cursor_style)
        self.text = text
        if self.on_flush is not None:
            self.on_flush(text)


# ---------------------------
# Line model
# ---------------------------

@dataclass
class Line:
    """Expected text for one display row and what has been typed against it."""

    expected: str
    buffer: List[str] = field(default_factory=list)
    index: int = 0

    @classmethod
    def create(cls, source: WordSource, word_count: int = LINE_LEN) -> Line:
        return cls(expected=source.next_line(word_count))

    @classmethod
    def empty(cls) -> Line:
        """A line with nothing to type."""
        return cls(expected="")

    @property
    def typed(self) -> str:
        return "".join(self.buffer)

    def append_char(self, ch: str) -> None:
        self.buffer.append(ch)
        self.index += 1

    def remove_last_char(self) -> None:
        if self.index > 0:
            self.buffer.pop()
            self.index -= 1

    def is_done(self) -> bool:
        """Length-complete; says nothing about correctness."""
        return self.index >= len(self.expected)

    def word_completion_count(self) -> int:
        """
        Count words typed without a single wrong character.

        The buffer is scanned with a virtual trailing space. A word counts when
        the space that ends it in the expected text is reached with no mistake
        inside it, or when the scan runs off the end of the expected text while
        the word in progress is still clean.
        """
        buffer = self.buffer + [" "]
        expected = self.expected
        word_correct = True
        count = 0
        for i, ch in enumerate(buffer):
            if i >= len(expected):
                if word_correct:
                    count += 1
                break
            if expected[i] == " ":
                if word_correct:
                    count += 1
                word_correct = True
            if ch != expected[i]:
                word_correct = False
        return count

    def render(self, surface: Surface) -> None:
        buffer = self.buffer
        expected = self.expected
        for i in range(max(len(buffer), len(expected))):
            if i >= len(buffer):
                surface.draw_char(expected[i], CharStyle.UNTOUCHED)
            elif i >= len(expected):
                surface.draw_char(buffer[i], CharStyle.ERROR)
            else:
                ch = buffer[i]
                correct = ch == expected[i]
                if ch == " ":
                    style = CharStyle.CORRECT_SPACE if correct else CharStyle.ERROR_SPACE
                else:
                    style = CharStyle.CORRECT if correct else CharStyle.ERROR
                surface.draw_char(ch, style)
        surface.next_line()


# ---------------------------
# Input events
# ---------------------------

@dataclass(frozen=True)
class Character:
    char: str


@dataclass(frozen=True)
class Backspace:
    pass


@dataclass(frozen=True)
class Escape:
    pass


@dataclass(frozen=True)
class Resize:
    width: int
    height: int


@dataclass(frozen=True)
class Other:
    pass


InputEvent = Union[Character, Backspace, Escape, Resize, Other]


def translate_key(event: events.Key) -> InputEvent:
    if event.key == "escape":
        return Escape()
    if event.key in ("backspace", "ctrl+h"):
        return Backspace()
    if event.is_printable and event.character:
        return Character(event.character)
    return Other()


# ---------------------------
# Session
# ---------------------------

class SessionState(str, Enum):
    RUNNING = "running"
    FINISHED = "finished"


def compute_wpm(words: int, elapsed_sec: float) -> float:
    if elapsed_sec <= 0:
        return 0.0
    return words / (elapsed_sec / 60.0)


def needs_redraw(event: InputEvent, state: SessionState) -> bool:
    if state is not SessionState.RUNNING:
        return False
    return isinstance(event, (Character, Backspace, Resize))


@dataclass
class Summary:
    words: int
    elapsed: float
    correct_words: int
    aborted: bool = False

    @property
    def wpm(self) -> float:
        return compute_wpm(self.words, self.elapsed)


class Session:
    """
    One typing test: the line being typed, the line after it, and every line
    already finished.

    Every space keystroke counts as a completed word, right or wrong; that
    counter alone decides when the test ends and what WPM is reported.
    `correct_words` is tracked separately for the summary.
    """

    def __init__(
        self,
        target: int = DEFAULT_WORD_TARGET,
        source: Optional[WordSource] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.source = source or WordSource()
        self.target = target
        self.clock = clock
        self.current = Line.create(self.source)
        self.next_line = Line.create(self.source)
        self.history: List[Line] = []
        self.words_completed = 0
        self.state = SessionState.RUNNING
        self.aborted = False
        self.terminal_size: Optional[Tuple[int, int]] = None
        self.started_at: Optional[float] = None
        self.finished_at: Optional[float] = None
        logger.info("Session started, target {} words", target)

    @property
    def elapsed(self) -> float:
        if self.started_at is None:
            return 0.0
        end = self.finished_at if self.finished_at is not None else self.clock()
        return end - self.started_at

    @property
    def correct_words(self) -> int:
        lines = self.history + [self.current]
        return sum(line.word_completion_count() for line in lines)

    def handle(self, event: InputEvent) -> bool:
        """Apply one input event; return True when the screen must be repainted."""
        if self.state is SessionState.FINISHED:
            return False
        if isinstance(event, Character):
            self._type(event.char)
        elif isinstance(event, Backspace):
            self.current.remove_last_char()
        elif isinstance(event, Resize):
            self.terminal_size = (event.width, event.height)
        elif isinstance(event, Escape):
            self.finish(aborted=True)
        self.check_termination()
        return needs_redraw(event, self.state)

    def _type(self, ch: str) -> None:
        # the space that finishes a line is consumed by the rotation
        if ch == " " and self.current.is_done():
            self.rotate()
        else:
            self.current.append_char(ch)
        if ch == " ":
            self.words_completed += 1

    def rotate(self) -> None:
        finished = self.current
        self.current = self.next_line
        self.next_line = Line.create(self.source)
        self.history.append(finished)
        logger.debug("Line {} done: {!r}", len(self.history), finished.typed)

    def check_termination(self) -> bool:
        if self.state is SessionState.RUNNING and self.words_completed >= self.target:
            self.finish()
        return self.state is SessionState.FINISHED

    def finish(self, aborted: bool = False) -> None:
        if self.state is SessionState.FINISHED:
            return
        self.state = SessionState.FINISHED
        self.aborted = aborted
        self.finished_at = self.clock()
        logger.info(
            "Session {}: {} words in {:.2f}s",
            "aborted" if aborted else "finished",
            self.words_completed,
            self.elapsed,
        )

    def redraw(self, surface: Surface) -> None:
        if self.started_at is None:
            self.started_at = self.clock()
        surface.clear()
        for line in self.history:
            line.render(surface)
        self.current.render(surface)
        self.next_line.render(surface)
        surface.move_cursor_to(self.current.index, len(self.history))
        surface.flush()

    def summary(self) -> Summary:
        return Summary(
            words=self.words_completed,
            elapsed=self.elapsed,
            correct_words=self.correct_words,
            aborted=self.aborted,
        )


# ---------------------------
# UI widgets
# ---------------------------

class StatsBar(Static):
    """Live word count."""
    pass


class TypingView(Static):
    """Finished lines, the current line and the next one."""
    pass


class LinesView(VerticalScroll, can_focus=False):
    """Scrolls the typing view so the line being typed stays on screen."""
    pass


# ---------------------------
# App
# ---------------------------

class TypingTestApp(App):
    CSS = """
    Screen {
        background: transparent;
    }

    #root {
        height: 100%;
        padding: 1 2;
    }

    StatsBar {
        border: round #1f2937;
        padding: 0 2;
        height: 3;
    }

    LinesView {
        border: round #1f2937;
        padding: 1 2;
        height: 1fr;
    }

    TypingView {
        height: auto;
    }
    """

    TITLE = "typespeed"

    def __init__(self, session: Session, settings: Optional[Settings] = None) -> None:
        super().__init__()
        self.session = session
        self.settings = settings or Settings()
        self.palette = self.settings.palette
        self.surface = TextSurface(self.palette, on_flush=self._show)
        self._view_ready = False
        self._run_over = False

    def compose(self) -> ComposeResult:
        with Container(id="root"):
            self.stats_bar = StatsBar()
            self.typing_view = TypingView()
            self.lines_view = LinesView(self.typing_view)
            yield self.stats_bar
            yield self.lines_view

    def on_mount(self) -> None:
        self.session.terminal_size = (self.size.width, self.size.height)
        self.apply_theme()
        self._view_ready = True
        self.redraw()
        self.set_interval(POLL_INTERVAL, self._tick)

    def apply_theme(self) -> None:
        palette = self.palette
        border_def = ("round", palette["border"])
        for widget in (self.stats_bar, self.lines_view):
            widget.styles.background = palette["card_bg"]
            widget.styles.border = border_def

    def on_key(self, event: events.Key) -> None:
        if self._run_over:
            return
        event.stop()
        if self.session.handle(translate_key(event)):
            self.redraw()
        if self.session.state is SessionState.FINISHED:
            self._finish()

    def on_resize(self, event: events.Resize) -> None:
        size = event.size
        if self.session.handle(Resize(size.width, size.height)) and self._view_ready:
            self.redraw()

    def redraw(self) -> None:
        if self._run_over:
            return
        self.session.redraw(self.surface)
        self._render_stats()

    def _show(self, text: Text) -> None:
        self.typing_view.update(text)
        self.call_after_refresh(self.lines_view.scroll_end, animate=False)

    def _tick(self) -> None:
        if self._run_over:
            return
        if self.session.check_termination():
            self._finish()
            return
        self._render_stats()

    def _finish(self) -> None:
        if self._run_over:
            return
        self._run_over = True
        self.session.finish()
        summary = self.session.summary()
        self.typing_view.update("")
        self.stats_bar.update("")
        self.exit(summary)

    def _render_stats(self) -> None:
        theme = self.palette
        session = self.session
        text = Text()
        text.append("Words ", style=theme["muted"])
        text.append(f"{session.words_completed}", style=f"bold {theme['title']}")
        text.append(f" / {session.target}", style=theme["muted"])
        text.append("   ", style=theme["muted"])
        text.append("Without errors ", style=theme["muted"])
        text.append(f"{session.correct_words}", style=f"bold {theme['title']}")
        text.append("   ", style=theme["muted"])
        text.append("Time ", style=theme["muted"])
        text.append(f"{session.elapsed:5.1f}s", style=f"bold {theme['title']}")
        text.append("   ", style=theme["muted"])
        text.append("Esc to stop", style=theme["muted"])
        self.stats_bar.update(text)


# ---------------------------
# CLI
# ---------------------------

def _word_target(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a whole number: {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="typespeed",
        description="A program to test your typing speed",
    )
    parser.add_argument(
        "-n",
        "--number",
        type=_word_target,
        default=None,
        help=f"The number of words to type before a test ends (default: {DEFAULT_WORD_TARGET})",
    )
    return parser


def print_summary(summary: Summary, console: Optional[Console] = None) -> None:
    console = console or Console()
    console.print(f"You typed [bold]{summary.words}[/bold] words in {summary.elapsed:.2f} seconds")
    console.print(f"That's [bold]{summary.wpm:.1f}[/bold] wpm")
    console.print(f"{summary.correct_words} words typed without errors", style="dim")


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    # load_config logs its warnings to the file sink
    configure_logging()
    settings = Settings.from_config(load_config())
    if settings.log_level != "INFO":
        configure_logging(settings.log_level)
    target = args.number if args.number is not None else settings.word_target
    app = TypingTestApp(Session(target=target), settings)
    summary = app.run()
    if summary is None:
        return app.return_code or 0
    print_summary(summary)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
