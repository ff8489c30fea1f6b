"""
Unit tests for the pure pipeline derivations (grouping, stats, placement plans).
"""
import pytest
from datetime import datetime, timedelta
from types import SimpleNamespace

from crushes.pipeline import (
    group_by_stage, compute_stats, success_rate,
    plan_insert_at_top, plan_move, plan_remove,
)
from crushes.schema import STAGE_ORDER

BASE_TIME = datetime(2026, 1, 1, 12, 0, 0)


def make_crush(id, stage="Primeiro Contato", position=0, minutes=0):
    return SimpleNamespace(
        id=id, current_stage=stage, position=position,
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


def apply(crushes, placement):
    for crush in crushes:
        if crush.id in placement:
            crush.current_stage, crush.position = placement[crush.id]


def column(crushes, stage):
    return [(c.id, c.position) for c in group_by_stage(crushes)[stage]]


@pytest.mark.unit
class TestGroupByStage:
    def test_all_stages_present_in_order(self):
        groups = group_by_stage([])
        assert list(groups.keys()) == STAGE_ORDER
        assert all(members == [] for members in groups.values())

    def test_sorted_by_position(self):
        crushes = [make_crush("b", position=1), make_crush("a", position=0)]
        assert [c.id for c in group_by_stage(crushes)["Primeiro Contato"]] == ["a", "b"]

    def test_equal_positions_newest_first(self):
        crushes = [make_crush("old", minutes=0), make_crush("new", minutes=5)]
        assert [c.id for c in group_by_stage(crushes)["Primeiro Contato"]] == ["new", "old"]

    def test_missing_stage_falls_back_to_first(self):
        crush = make_crush("x", stage=None)
        assert group_by_stage([crush])["Primeiro Contato"] == [crush]

    def test_unknown_stage_kept_after_fixed_columns(self):
        crush = make_crush("x", stage="Casamento")
        groups = group_by_stage([crush])
        assert list(groups.keys())[-1] == "Casamento"
        assert groups["Casamento"] == [crush]


@pytest.mark.unit
class TestStats:
    def test_empty_pipeline(self):
        stats = compute_stats([])
        assert stats["total"] == 0
        assert stats["success_rate"] == 0
        assert stats["by_stage"] == {stage: 0 for stage in STAGE_ORDER}

    def test_success_rate_rounds_half_up(self):
        assert success_rate(1, 8) == 13  # 12.5
        assert success_rate(1, 3) == 33
        assert success_rate(2, 3) == 67
        assert success_rate(3, 3) == 100

    def test_counts_relationships(self):
        crushes = [
            make_crush("a", "Relacionamento"),
            make_crush("b", "Encontro"),
            make_crush("c", "Primeiro Contato"),
            make_crush("d", "Conversa Inicial"),
        ]
        stats = compute_stats(crushes)
        assert stats["total"] == 4
        assert stats["by_stage"]["Relacionamento"] == 1
        assert stats["success_rate"] == 25


@pytest.mark.unit
class TestPlacementPlans:
    def test_add_then_drag_scenario(self):
        """Ana, then Bia on top, then Ana dragged to the top of Encontro."""
        crushes = []

        ana = make_crush("ana", position=0, minutes=0)
        apply(crushes, plan_insert_at_top(crushes, "Primeiro Contato"))
        crushes.append(ana)
        assert column(crushes, "Primeiro Contato") == [("ana", 0)]

        bia = make_crush("bia", position=0, minutes=1)
        apply(crushes, plan_insert_at_top(crushes, "Primeiro Contato"))
        crushes.append(bia)
        assert column(crushes, "Primeiro Contato") == [("bia", 0), ("ana", 1)]

        apply(crushes, plan_move(crushes, "ana", "Encontro", 0))
        assert column(crushes, "Primeiro Contato") == [("bia", 0)]
        assert column(crushes, "Encontro") == [("ana", 0)]

    def test_move_within_stage(self):
        crushes = [make_crush(str(i), position=i) for i in range(4)]
        apply(crushes, plan_move(crushes, "0", "Primeiro Contato", 2))
        assert column(crushes, "Primeiro Contato") == [("1", 0), ("2", 1), ("0", 2), ("3", 3)]

    def test_move_without_position_appends(self):
        crushes = [
            make_crush("a", "Encontro", 0),
            make_crush("b", "Encontro", 1),
            make_crush("c", "Primeiro Contato", 0),
        ]
        apply(crushes, plan_move(crushes, "c", "Encontro"))
        assert column(crushes, "Encontro") == [("a", 0), ("b", 1), ("c", 2)]
        assert column(crushes, "Primeiro Contato") == []

    def test_out_of_range_position_is_clamped(self):
        crushes = [make_crush("a", "Encontro", 0), make_crush("b")]
        apply(crushes, plan_move(crushes, "b", "Encontro", 99))
        assert column(crushes, "Encontro") == [("a", 0), ("b", 1)]

    def test_positions_stay_contiguous_after_many_moves(self):
        crushes = [make_crush(str(i), position=i) for i in range(6)]
        moves = [("3", "Encontro", 0), ("0", "Encontro", 1), ("5", "Relacionamento", 0),
                 ("3", "Primeiro Contato", 1), ("1", "Encontro", 5)]
        for crush_id, stage, position in moves:
            apply(crushes, plan_move(crushes, crush_id, stage, position))

        for stage, members in group_by_stage(crushes).items():
            assert [c.position for c in members] == list(range(len(members)))
        assert len(crushes) == 6

    def test_move_unknown_crush_raises(self):
        with pytest.raises(KeyError):
            plan_move([make_crush("a")], "missing", "Encontro", 0)

    def test_remove_closes_gap(self):
        crushes = [make_crush(str(i), position=i) for i in range(3)]
        placement = plan_remove(crushes, "1")
        survivors = [c for c in crushes if c.id != "1"]
        apply(survivors, placement)
        assert column(survivors, "Primeiro Contato") == [("0", 0), ("2", 1)]

    def test_remove_unknown_is_empty_plan(self):
        assert plan_remove([make_crush("a")], "missing") == {}
