from __future__ import annotations

from dataclasses import dataclass

CANVAS_WIDTH = 1920
CANVAS_HEIGHT = 1080

EDGE_GUTTER = 30
COLUMN_GAP = 15
COLUMN_SHRINK = 30

TABLE_TOP = 320
HERO_SIZE = 110
NICKNAME_CENTER_OFFSET = 24
NICKNAME_OFFSET = 46
CELL_HEIGHT = 60


@dataclass(frozen=True)
class ColumnBox:
    x: float
    width: float

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2


@dataclass(frozen=True)
class MatchLayout:
    """Pixel geometry shared by every column of the scoreboard."""

    team_a_count: int
    team_b_count: int
    column_width: float
    left_start: float
    right_start: float
    canvas_width: int = CANVAS_WIDTH
    column_gap: int = COLUMN_GAP

    @property
    def left_end(self) -> float:
        """Right edge of the last team A column."""
        return self.left_start + self.team_a_count * self.column_width + (self.team_a_count - 1) * self.column_gap

    def team_a_column(self, index: int) -> ColumnBox:
        return ColumnBox(x=self.left_start + index * (self.column_width + self.column_gap), width=self.column_width)

    def team_b_column(self, index: int) -> ColumnBox:
        return ColumnBox(x=self.right_start + index * (self.column_width + self.column_gap), width=self.column_width)

    def columns(self, side: int) -> list[ColumnBox]:
        """Return the column boxes of side 0 (team A, left) or 1 (team B, right)."""
        if side == 0:
            return [self.team_a_column(i) for i in range(self.team_a_count)]
        return [self.team_b_column(i) for i in range(self.team_b_count)]


def compute_column_width(total_players: int, *, canvas_width: int = CANVAS_WIDTH, gap: int = COLUMN_GAP) -> float:
    """Uniform column width for all players across both teams."""
    return (canvas_width - gap * (total_players - 1)) / total_players - COLUMN_SHRINK


def compute_layout(
    team_a_count: int,
    team_b_count: int,
    *,
    canvas_width: int = CANVAS_WIDTH,
    gutter: int = EDGE_GUTTER,
    gap: int = COLUMN_GAP,
) -> MatchLayout:
    """Place team A flush left and team B flush right, mirrored around the centerline.

    Both counts must be at least 1. Oversized rosters are not rejected; the
    resulting geometry is simply not meaningful.
    """
    column_width = compute_column_width(team_a_count + team_b_count, canvas_width=canvas_width, gap=gap)
    right_start = canvas_width - gutter - team_b_count * column_width - (team_b_count - 1) * gap
    return MatchLayout(
        team_a_count=team_a_count,
        team_b_count=team_b_count,
        column_width=column_width,
        left_start=gutter,
        right_start=right_start,
        canvas_width=canvas_width,
        column_gap=gap,
    )


def nickname_center_y() -> int:
    return TABLE_TOP + HERO_SIZE + NICKNAME_CENTER_OFFSET


def stat_row_top(row_index: int) -> int:
    """Top y of a stat row; identical for every column."""
    return TABLE_TOP + HERO_SIZE + NICKNAME_OFFSET + row_index * CELL_HEIGHT


def stat_row_center_y(row_index: int) -> int:
    return stat_row_top(row_index) + CELL_HEIGHT // 2
