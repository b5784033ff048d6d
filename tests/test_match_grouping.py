from helpers import make_match, ts
from match_grouping import (
    TIME_GAP_THRESHOLD_MS,
    format_date_range,
    format_group_label,
    group_sessions,
    is_in_group,
    matches_in_group,
    toggle_group,
)


def afternoon_and_night():
    return [
        make_match("c", created_at="2024-07-14 14:00"),
        make_match("a", created_at="2024-07-14 10:00"),
        make_match("b", created_at="2024-07-14 10:30"),
    ]


class TestGroupSessions:

    def test_gap_over_three_hours_starts_new_session(self):
        groups = group_sessions(afternoon_and_night())
        assert [g.match_ids for g in groups] == [("a", "b"), ("c",)]
        assert groups[0].start_date == ts("2024-07-14 10:00")
        assert groups[0].end_date == ts("2024-07-14 10:30")
        assert groups[0].match_count == 2

    def test_labels_use_local_day(self):
        # 10:00 UTC is 19:00 in Seoul.
        groups = group_sessions(afternoon_and_night())
        assert groups[0].display_label == "7월 14일 (2판)"
        assert groups[1].display_label == "7월 14일 (1판)"

    def test_exact_threshold_stays_in_session(self):
        matches = [
            make_match("a", created_at="2024-07-14 10:00"),
            make_match("b", created_at="2024-07-14 13:00"),
        ]
        assert len(group_sessions(matches)) == 1

    def test_gap_is_measured_from_previous_match(self):
        matches = [make_match(f"m{h}", created_at=f"2024-07-14 {h:02d}:00") for h in range(0, 12, 2)]
        groups = group_sessions(matches)
        assert len(groups) == 1
        assert groups[0].match_count == 6

    def test_empty_and_single(self):
        assert group_sessions([]) == []
        groups = group_sessions([make_match("only")])
        assert len(groups) == 1
        assert groups[0].start_date == groups[0].end_date

    def test_every_match_lands_in_exactly_one_group(self):
        matches = afternoon_and_night()
        ids = [match_id for g in group_sessions(matches) for match_id in g.match_ids]
        assert sorted(ids) == ["a", "b", "c"]

    def test_regrouping_is_stable(self):
        matches = afternoon_and_night()
        assert group_sessions(matches) == group_sessions(list(reversed(matches)))

    def test_custom_threshold(self):
        groups = group_sessions(afternoon_and_night(), gap_threshold_ms=20 * 60 * 1000)
        assert [g.match_ids for g in groups] == [("a",), ("b",), ("c",)]
        assert TIME_GAP_THRESHOLD_MS == 3 * 60 * 60 * 1000

    def test_to_dict(self):
        data = group_sessions(afternoon_and_night())[0].to_dict()
        assert data == {
            "startDate": "2024-07-14T10:00:00Z",
            "endDate": "2024-07-14T10:30:00Z",
            "displayLabel": "7월 14일 (2판)",
            "matchCount": 2,
            "matchIds": ["a", "b"],
        }


class TestGroupSelection:

    def test_membership(self):
        matches = afternoon_and_night()
        first = group_sessions(matches)[0]
        assert is_in_group("a", first)
        assert not is_in_group("c", first)
        assert [m.id for m in matches_in_group(matches, first)] == ["a", "b"]

    def test_toggle_selects_then_clears(self):
        first = group_sessions(afternoon_and_night())[0]
        selected = toggle_group({"c"}, first)
        assert selected == {"a", "b", "c"}
        assert toggle_group(selected, first) == {"c"}

    def test_partially_selected_group_gets_filled(self):
        first = group_sessions(afternoon_and_night())[0]
        assert toggle_group({"a"}, first) == {"a", "b"}


def test_label_crossing_midnight_keeps_start_day():
    # 14:30 UTC is 23:30 in Seoul.
    assert format_group_label(ts("2024-07-14 14:30"), 4) == "7월 14일 (4판)"


def test_format_date_range():
    text = format_date_range(ts("2024-07-14 10:00"), ts("2024-07-14 16:05"))
    assert text == "7월 14일 19:00 ~ 7월 15일 01:05"
