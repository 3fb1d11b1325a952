from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from functools import lru_cache
from io import BytesIO
from operator import attrgetter
from pathlib import Path

from PIL import Image, ImageColor, ImageDraw, ImageFont

from ..schemas.render_model import MatchRenderModel, PlayerStats, TeamStats
from .asset_loader import load_asset_image
from .core import ImageEncodeError
from .match_image_layout import (
    CANVAS_HEIGHT,
    CANVAS_WIDTH,
    CELL_HEIGHT,
    HERO_SIZE,
    TABLE_TOP,
    ColumnBox,
    compute_layout,
    nickname_center_y,
    stat_row_center_y,
    stat_row_top,
)

Font = ImageFont.FreeTypeFont | ImageFont.ImageFont
RGB = tuple[int, int, int]
AssetLoader = Callable[[str], Image.Image | None]

logger = logging.getLogger(__name__)

BACKGROUND_RGB = (22, 28, 42)
PANEL_RGB = (24, 24, 24)
WHITE_RGB = (255, 255, 255)
MUTED_RGB = (194, 194, 194)
VICTORY_RGB = (255, 231, 194)
DEFEAT_RGB = MUTED_RGB

DURATION_PILL_TOP = 80
DURATION_PILL_HEIGHT = 56
DURATION_PILL_RADIUS = 14
DURATION_PILL_HALF_WIDTH = 62
DURATION_PILL_ALPHA = 242
DURATION_FONT_SIZE = 28

TEAM_BAR_TOP = 160
TEAM_BAR_MARGIN = 40
TEAM_BAR_WIDTH = 700
TEAM_BAR_HEIGHT = 80
TEAM_BAR_ALPHA = 250
ACCENT_WIDTH = 6
RANK_ICON_SIZE = 54
TEAM_BAR_PADDING = 24
TEAM_NAME_GAP = 18
SUMMARY_LEAD = 64
SUMMARY_STEP = 80
TEAM_NAME_FONT_SIZE = 28
RESULT_FONT_SIZE = 22
SUMMARY_VALUE_FONT_SIZE = 24
SUMMARY_LABEL_FONT_SIZE = 16

STAT_LABEL_FONT_SIZE = 24
STAT_VALUE_FONT_SIZE = 24
HIGHLIGHT_OPACITY = 0.85

NICKNAME_FONT_START = 20
NICKNAME_FONT_STEP = 2
NICKNAME_FONT_FLOOR = 16

# (even row, odd row)
TEAM_A_CELL_RGB: tuple[RGB, RGB] = ((40, 53, 98), (31, 43, 81))
TEAM_B_CELL_RGB: tuple[RGB, RGB] = ((76, 61, 31), (63, 51, 27))


def _hex_rgb(value: str) -> RGB:
    rgb = ImageColor.getrgb(value)
    return int(rgb[0]), int(rgb[1]), int(rgb[2])


@dataclass(frozen=True)
class StatRow:
    key: str
    label: str
    highlight_rgb: RGB | None
    highlightable: bool
    value: Callable[[PlayerStats], int]


STAT_ROWS: tuple[StatRow, ...] = (
    StatRow("souls", "TOTAL SOULS", _hex_rgb("#97f5ce"), True, attrgetter("souls")),
    StatRow("kills", "KILLS", _hex_rgb("#d24f54"), True, attrgetter("kills")),
    StatRow("deaths", "DEATHS", None, False, attrgetter("deaths")),
    StatRow("assists", "ASSISTS", _hex_rgb("#7b2c97"), True, attrgetter("assists")),
    StatRow("player_damage", "PLAYER DMG", _hex_rgb("#2b60ca"), True, attrgetter("player_damage")),
    StatRow("objective_damage", "OBJ DMG", _hex_rgb("#be943e"), True, attrgetter("objective_damage")),
    StatRow("healing", "HEALING", _hex_rgb("#96cd1d"), True, attrgetter("healing")),
)


@dataclass(frozen=True)
class _MatchAssets:
    hero_art: tuple[tuple[Image.Image | None, ...], tuple[Image.Image | None, ...]]
    rank_icons: tuple[Image.Image | None, Image.Image | None]


@dataclass(frozen=True)
class _ColumnStyle:
    cell_rgb: tuple[RGB, RGB]
    maxima: dict[str, int]


def _format_cell(value: int) -> str:
    """Format a stat cell with thousands separators."""
    return f"{value:,}"


def _format_summary_value(value: int, *, always_thousands: bool = False) -> str:
    """Format a team bar number; `always_thousands` is for values already counted in thousands."""
    if always_thousands:
        return f"{value}K"
    if value >= 1000:
        return f"{value // 1000}K"
    return str(value)


def team_summary(team: TeamStats) -> list[tuple[str, str]]:
    """Return the (value, label) pairs shown on a team bar."""
    kills = sum(p.kills for p in team.players)
    damage = sum(p.player_damage for p in team.players)
    return [
        (_format_summary_value(kills), "KILLS"),
        (_format_summary_value(team.total_souls, always_thousands=True), "SOULS"),
        (_format_summary_value(damage), "DAMAGE"),
    ]


def compute_stat_maxima(players: Sequence[PlayerStats]) -> dict[str, int]:
    """Maximum of every highlightable stat over the given players."""
    maxima: dict[str, int] = {}
    for player in players:
        for row in STAT_ROWS:
            if not row.highlightable:
                continue
            value = row.value(player)
            if row.key not in maxima or value > maxima[row.key]:
                maxima[row.key] = value
    return maxima


def is_leader(row: StatRow, value: int, maxima: dict[str, int]) -> bool:
    """Return True if `value` ties the combined-roster maximum for a highlightable row."""
    return row.highlightable and row.key in maxima and value == maxima[row.key]


def leader_cells(model: MatchRenderModel) -> set[tuple[int, int, str]]:
    """Return (side, player index, stat key) for every highlighted cell."""
    maxima = compute_stat_maxima(model.all_players)
    cells: set[tuple[int, int, str]] = set()
    for side, team in enumerate((model.team_a, model.team_b)):
        for index, player in enumerate(team.players):
            for row in STAT_ROWS:
                if is_leader(row, row.value(player), maxima):
                    cells.add((side, index, row.key))
    return cells


@lru_cache(maxsize=32)
def _load_fonts(font_size: int) -> tuple[Font, Font]:
    """Load a font and bold font (TTF preferred, else Pillow default)."""
    candidates: list[tuple[str, str]] = [
        ("arial.ttf", "arialbd.ttf"),
        ("Arial.ttf", "Arial Bold.ttf"),
        ("LiberationSans-Regular.ttf", "LiberationSans-Bold.ttf"),
        ("DejaVuSans.ttf", "DejaVuSans-Bold.ttf"),
    ]
    font_dirs = [
        Path("/usr/share/fonts"),
        Path("/usr/local/share/fonts"),
        Path("C:/Windows/Fonts"),
    ]

    def _try_load(name_or_path: str, size: int) -> Font:
        """Load a truetype font by name or by searching known font dirs."""
        try:
            return ImageFont.truetype(name_or_path, size)
        except Exception:
            for d in font_dirs:
                p = d / name_or_path
                if p.exists():
                    return ImageFont.truetype(str(p), size)
            raise

    for regular_name, bold_name in candidates:
        try:
            font = _try_load(regular_name, font_size)
            try:
                font_bold = _try_load(bold_name, font_size)
            except Exception:
                font_bold = font
            return font, font_bold
        except Exception:
            continue

    font = ImageFont.load_default(font_size)
    return font, font


def _text_w(draw: ImageDraw.ImageDraw, font: Font, s: str) -> int:
    """Measure single-line text width."""
    bbox = draw.textbbox((0, 0), s, font=font)
    return int(bbox[2] - bbox[0])


def fit_font_size(
    width_at: Callable[[int], float],
    max_width: float,
    *,
    start: int = NICKNAME_FONT_START,
    step: int = NICKNAME_FONT_STEP,
    floor: int = NICKNAME_FONT_FLOOR,
) -> int:
    """Shrink from `start` by `step` until the text fits `max_width` or `floor` is reached."""
    size = start
    while width_at(size) > max_width and size > floor:
        size = max(floor, size - step)
    return size


def _fit_nickname_font(draw: ImageDraw.ImageDraw, nickname: str, max_width: float) -> Font:
    size = fit_font_size(lambda s: _text_w(draw, _load_fonts(s)[1], nickname), max_width)
    return _load_fonts(size)[1]


def fit_within_square(size: tuple[int, int], box: int) -> tuple[float, float]:
    """Scale (w, h) so the longer side equals `box`, keeping the aspect ratio."""
    src_w, src_h = size
    aspect = src_w / src_h
    if aspect > 1:
        return float(box), box / aspect
    return box * aspect, float(box)


def _horizontal_fade(width: int, height: int, rgb: RGB, *, opacity: float) -> Image.Image:
    """Return an RGBA tile that is `rgb` at the right edge and transparent at the left edge."""
    ramp = bytes(int(round(255 * opacity * i / max(1, width - 1))) for i in range(width))
    mask = Image.frombytes("L", (width, 1), ramp).resize((width, height), resample=Image.Resampling.NEAREST)
    tile = Image.new("RGBA", (width, height), (*rgb, 255))
    tile.putalpha(mask)
    return tile


def _safe_load(loader: AssetLoader, reference: str) -> Image.Image | None:
    """Run the asset loader, treating any failure as a missing asset."""
    if not reference:
        return None
    try:
        img = loader(reference)
        # Lazily opened images only fail once decoded.
        return img.convert("RGBA") if img is not None else None
    except Exception:
        logger.warning("Asset loader failed for %s", reference, exc_info=True)
        return None


def _load_match_assets(model: MatchRenderModel, loader: AssetLoader) -> _MatchAssets:
    """Load every hero portrait and rank icon before any drawing starts."""
    teams = (model.team_a, model.team_b)
    hero_art = tuple(tuple(_safe_load(loader, p.hero_image) for p in team.players) for team in teams)
    rank_icons = tuple(_safe_load(loader, team.rank_icon) for team in teams)
    return _MatchAssets(hero_art=hero_art, rank_icons=rank_icons)  # type: ignore[arg-type]


def _draw_duration_pill(canvas: Image.Image, duration: str) -> None:
    """Draw the rounded duration box centered at the top of the canvas."""
    draw = ImageDraw.Draw(canvas, "RGBA")
    center_x = CANVAS_WIDTH // 2
    draw.rounded_rectangle(
        (
            center_x - DURATION_PILL_HALF_WIDTH,
            DURATION_PILL_TOP,
            center_x + DURATION_PILL_HALF_WIDTH,
            DURATION_PILL_TOP + DURATION_PILL_HEIGHT,
        ),
        radius=DURATION_PILL_RADIUS,
        fill=(*PANEL_RGB, DURATION_PILL_ALPHA),
    )
    _, font_bold = _load_fonts(DURATION_FONT_SIZE)
    draw.text(
        (center_x, DURATION_PILL_TOP + DURATION_PILL_HEIGHT // 2),
        duration,
        font=font_bold,
        anchor="mm",
        fill=WHITE_RGB,
    )


def _draw_team_bar(canvas: Image.Image, *, x: int, team: TeamStats, rank_icon: Image.Image | None) -> None:
    """Draw a team summary bar: accent, rank icon, name, result and kills/souls/damage."""
    draw = ImageDraw.Draw(canvas, "RGBA")
    y = TEAM_BAR_TOP
    accent_rgb = _hex_rgb(team.color)

    draw.rectangle((x, y, x + TEAM_BAR_WIDTH - 1, y + TEAM_BAR_HEIGHT - 1), fill=(*PANEL_RGB, TEAM_BAR_ALPHA))
    draw.rectangle((x, y, x + ACCENT_WIDTH - 1, y + TEAM_BAR_HEIGHT - 1), fill=accent_rgb)

    icon_x = x + ACCENT_WIDTH + TEAM_BAR_PADDING
    if rank_icon is not None:
        icon = rank_icon.resize((RANK_ICON_SIZE, RANK_ICON_SIZE), resample=Image.Resampling.LANCZOS)
        canvas.paste(icon, (icon_x, y + (TEAM_BAR_HEIGHT - RANK_ICON_SIZE) // 2), icon)

    text_x = icon_x + RANK_ICON_SIZE + TEAM_NAME_GAP
    _, name_font = _load_fonts(TEAM_NAME_FONT_SIZE)
    draw.text((text_x, y + 12), team.name, font=name_font, anchor="lt", fill=accent_rgb)

    _, result_font = _load_fonts(RESULT_FONT_SIZE)
    draw.text(
        (text_x, y + 46),
        "VICTORY" if team.victory else "DEFEAT",
        font=result_font,
        anchor="lt",
        fill=VICTORY_RGB if team.victory else DEFEAT_RGB,
    )

    # Summary numbers follow the team name, so long names push them right.
    _, value_font = _load_fonts(SUMMARY_VALUE_FONT_SIZE)
    _, label_font = _load_fonts(SUMMARY_LABEL_FONT_SIZE)
    stats_x = text_x + _text_w(draw, name_font, team.name) + SUMMARY_LEAD
    stats_y = y + 18
    for i, (value, label) in enumerate(team_summary(team)):
        sx = stats_x + i * SUMMARY_STEP
        draw.text((sx, stats_y), value, font=value_font, anchor="mt", fill=WHITE_RGB)
        draw.text((sx, stats_y + 38), label, font=label_font, anchor="mt", fill=MUTED_RGB)


def _draw_stat_labels(canvas: Image.Image) -> None:
    """Draw the row labels down the canvas centerline."""
    draw = ImageDraw.Draw(canvas)
    _, font_bold = _load_fonts(STAT_LABEL_FONT_SIZE)
    for i, row in enumerate(STAT_ROWS):
        draw.text((CANVAS_WIDTH // 2, stat_row_center_y(i)), row.label, font=font_bold, anchor="mm", fill=MUTED_RGB)


def _draw_hero_art(canvas: Image.Image, *, column: ColumnBox, hero_art: Image.Image) -> None:
    """Paste hero art scaled into the square footprint at the top of the column."""
    src_w, src_h = hero_art.size
    if src_w <= 0 or src_h <= 0:
        return
    draw_w, draw_h = fit_within_square((src_w, src_h), HERO_SIZE)
    size = (max(1, round(draw_w)), max(1, round(draw_h)))
    resized = hero_art.resize(size, resample=Image.Resampling.LANCZOS)
    dest = (
        round(column.x + (column.width - draw_w) / 2),
        round(TABLE_TOP + (HERO_SIZE - draw_h) / 2),
    )
    canvas.paste(resized, dest, resized)


def _draw_stat_cell(
    canvas: Image.Image,
    *,
    column: ColumnBox,
    row_index: int,
    row: StatRow,
    value: int,
    style: _ColumnStyle,
) -> None:
    """Draw one stat cell, with the gradient and bold text when it holds the maximum."""
    x0 = round(column.x)
    x1 = round(column.x + column.width)
    y0 = stat_row_top(row_index)
    width = max(1, x1 - x0)

    draw = ImageDraw.Draw(canvas)
    draw.rectangle((x0, y0, x0 + width - 1, y0 + CELL_HEIGHT - 1), fill=style.cell_rgb[row_index % 2])

    leader = is_leader(row, value, style.maxima)
    if leader and row.highlight_rgb is not None:
        tile = _horizontal_fade(width, CELL_HEIGHT, row.highlight_rgb, opacity=HIGHLIGHT_OPACITY)
        canvas.paste(tile, (x0, y0), tile)

    font, font_bold = _load_fonts(STAT_VALUE_FONT_SIZE)
    draw = ImageDraw.Draw(canvas)
    draw.text(
        (column.center_x, stat_row_center_y(row_index)),
        _format_cell(value),
        font=font_bold if leader else font,
        anchor="mm",
        fill=WHITE_RGB if leader else MUTED_RGB,
    )


def _draw_player_column(
    canvas: Image.Image,
    *,
    player: PlayerStats,
    column: ColumnBox,
    hero_art: Image.Image | None,
    style: _ColumnStyle,
) -> None:
    """Draw hero art, nickname and the stat cells for one player."""
    if hero_art is not None:
        _draw_hero_art(canvas, column=column, hero_art=hero_art)

    draw = ImageDraw.Draw(canvas)
    nickname_font = _fit_nickname_font(draw, player.nickname, column.width)
    draw.text(
        (column.center_x, nickname_center_y()),
        player.nickname,
        font=nickname_font,
        anchor="mm",
        fill=WHITE_RGB,
    )

    for row_index, row in enumerate(STAT_ROWS):
        _draw_stat_cell(
            canvas,
            column=column,
            row_index=row_index,
            row=row,
            value=row.value(player),
            style=style,
        )


def _encode_png(img: Image.Image) -> bytes:
    buf = BytesIO()
    try:
        img.save(buf, format="PNG")
    except (OSError, ValueError) as exc:
        raise ImageEncodeError("Failed to encode scoreboard image") from exc
    return buf.getvalue()


def render_match_image(model: MatchRenderModel, *, asset_loader: AssetLoader | None = None) -> bytes:
    """Return PNG bytes of the 1920x1080 scoreboard for one match."""
    loader = asset_loader or load_asset_image
    assets = _load_match_assets(model, loader)

    teams = (model.team_a, model.team_b)
    layout = compute_layout(len(model.team_a.players), len(model.team_b.players))
    maxima = compute_stat_maxima(model.all_players)

    canvas = Image.new("RGB", (CANVAS_WIDTH, CANVAS_HEIGHT), BACKGROUND_RGB)

    _draw_duration_pill(canvas, model.duration)
    _draw_team_bar(canvas, x=TEAM_BAR_MARGIN, team=model.team_a, rank_icon=assets.rank_icons[0])
    _draw_team_bar(
        canvas,
        x=CANVAS_WIDTH - TEAM_BAR_WIDTH - TEAM_BAR_MARGIN,
        team=model.team_b,
        rank_icon=assets.rank_icons[1],
    )
    _draw_stat_labels(canvas)

    for side, (team, cell_rgb) in enumerate(zip(teams, (TEAM_A_CELL_RGB, TEAM_B_CELL_RGB))):
        style = _ColumnStyle(cell_rgb=cell_rgb, maxima=maxima)
        for index, column in enumerate(layout.columns(side)):
            _draw_player_column(
                canvas,
                player=team.players[index],
                column=column,
                hero_art=assets.hero_art[side][index],
                style=style,
            )

    png_bytes = _encode_png(canvas)
    logger.debug("Rendered match %s scoreboard (%d bytes)", model.match_id, len(png_bytes))
    return png_bytes
