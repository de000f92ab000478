from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from synchro.domain.activity.models import ActivityObservation, ActivityType
from synchro.domain.rhythm import analysis
from synchro.domain.rhythm.models import RhythmType, UserRhythm
from synchro.domain.rhythm.repo import canonical_pair
from synchro.domain.rhythm.service import RhythmDetector
from synchro.infra.memory import memory_store

CPH = ZoneInfo("Europe/Copenhagen")


def _obs(day, hour, minute=0, activity=ActivityType.COFFEE, location=None, user_id="alice"):
    # June 2025: the 1st is a Sunday
    detected = datetime(2025, 6, day, hour, minute, tzinfo=CPH).astimezone(timezone.utc)
    return ActivityObservation(
        user_id=user_id,
        activity_type=activity,
        latitude=55.676,
        longitude=12.568,
        confidence=0.9,
        detected_at=detected,
        expires_at=detected + timedelta(minutes=60),
        location_name=location,
    )


def _rhythm(user_id, rhythm_type=RhythmType.EARLY_BIRD, peaks=(8, 12), venues=("Cafe Norden",), coffee=()):
    return UserRhythm(
        user_id=user_id,
        rhythm_type=rhythm_type,
        social_peaks=list(peaks),
        favorite_venues=list(venues),
        coffee_spots=list(coffee),
    )


def test_wake_time_averages_hours_and_minutes_separately():
    observations = [_obs(2, 7, 10), _obs(3, 8, 30), _obs(3, 14)]
    assert analysis.estimate_wake_time(observations) == "07:20:00"
    assert analysis.estimate_wake_time([_obs(2, 14)]) is None


def test_sleep_time_wraps_past_midnight():
    assert analysis.estimate_sleep_time([_obs(2, 23), _obs(3, 1)]) == "00:00:00"
    assert analysis.estimate_sleep_time([_obs(2, 22), _obs(3, 23)]) == "22:00:00"
    assert analysis.estimate_sleep_time([_obs(2, 15)]) is None


def test_lunch_time_needs_three_midday_meals():
    meals = [_obs(2, 12, activity=ActivityType.LUNCH), _obs(3, 12), _obs(4, 13, activity=ActivityType.LUNCH)]
    assert analysis.estimate_lunch_time(meals[:2]) is None
    assert analysis.estimate_lunch_time(meals) == "12:00:00"
    dinners = [_obs(d, 12, activity=ActivityType.DINNER) for d in (2, 3, 4)]
    assert analysis.estimate_lunch_time(dinners) is None


def test_peak_ranking_breaks_ties_by_hour():
    observations = [_obs(2, 14), _obs(2, 9), _obs(3, 14), _obs(3, 9), _obs(4, 20)]
    assert analysis.calculate_energy_peaks(observations) == [9, 14, 20]
    commute = [_obs(2, 8, activity=ActivityType.COMMUTE)]
    assert analysis.detect_social_peaks(observations + commute) == [9, 14, 20]
    assert analysis.detect_social_peaks(commute) == []


@pytest.mark.parametrize(
    "wake, sleep, peaks, expected",
    [
        (None, "23:00:00", [8], RhythmType.UNKNOWN),
        ("06:00:00", "22:00:00", [], RhythmType.EARLY_BIRD),
        ("09:30:00", "01:00:00", [], RhythmType.NIGHT_OWL),
        ("08:00:00", "23:00:00", [21], RhythmType.NIGHT_OWL),
        ("08:00:00", "23:00:00", [8], RhythmType.EARLY_BIRD),
        ("08:00:00", "23:00:00", [8, 21], RhythmType.FLEXIBLE),
        ("08:00:00", "23:00:00", [], RhythmType.FLEXIBLE),
    ],
)
def test_classify_rhythm_type(wake, sleep, peaks, expected):
    assert analysis.classify_rhythm_type(wake, sleep, peaks) == expected


def test_workout_and_commute_patterns():
    observations = [
        _obs(2, 7, activity=ActivityType.EXERCISE, location="Fitness World"),
        _obs(2, 8, activity=ActivityType.COMMUTE),
        _obs(2, 17, activity=ActivityType.COMMUTE),
        _obs(2, 22, activity=ActivityType.COMMUTE),
    ]
    assert analysis.detect_workout_pattern(observations) == [
        {"day_of_week": 1, "hour": 7, "location": "Fitness World"}
    ]
    assert [entry["direction"] for entry in analysis.detect_commute_pattern(observations)] == [
        "to_work",
        "from_work",
        "other",
    ]


def test_venue_extraction():
    observations = [
        _obs(2, 9, location="Cafe Norden"),
        _obs(2, 12, activity=ActivityType.LUNCH, location="Torvehallerne"),
        _obs(3, 12, activity=ActivityType.LUNCH, location="Torvehallerne"),
        _obs(3, 9, location="Democratic Coffee"),
        _obs(4, 9, location="Cafe Norden"),
        _obs(4, 10),
    ]
    assert analysis.extract_coffee_spots(observations) == ["Cafe Norden", "Democratic Coffee"]
    assert analysis.extract_favorite_venues(observations) == ["Cafe Norden", "Torvehallerne", "Democratic Coffee"]


def test_weekend_routine_uses_saturday_and_sunday():
    observations = [
        _obs(1, 10, activity=ActivityType.EXERCISE),
        _obs(7, 12),
        _obs(7, 14),
        _obs(4, 9),
    ]
    assert analysis.analyze_weekend_routine(observations) == {
        "most_common_activity": "coffee",
        "average_start_time": "12:00",
        "total_activities": 3,
    }
    assert analysis.analyze_weekend_routine([_obs(4, 9)]) == {
        "most_common_activity": None,
        "average_start_time": None,
        "total_activities": 0,
    }


def test_routine_comparison_and_meetup():
    alice = _rhythm("alice", peaks=(8, 12), venues=("Cafe Norden", "Torvehallerne"), coffee=("Cafe Norden",))
    bob = _rhythm("bob", peaks=(12, 17), venues=("Torvehallerne",), coffee=("Cafe Norden",))

    assert analysis.routine_similarity(alice, bob) == pytest.approx(0.4 + 0.15 + 0.15)
    routines = analysis.shared_routines(alice, bob)
    assert routines == [
        "Both are early_birds",
        "Visit same venues: Torvehallerne",
        "Same coffee spots: Cafe Norden",
    ]
    assert analysis.meetup_suggestion(alice, bob, routines) == "Meet at Torvehallerne around 12:00"

    night = _rhythm("carol", rhythm_type=RhythmType.NIGHT_OWL, peaks=(0,), venues=("Torvehallerne",))
    late = _rhythm("dave", rhythm_type=RhythmType.NIGHT_OWL, peaks=(0,), venues=("Torvehallerne",))
    assert analysis.meetup_suggestion(night, late, ["x"]) == "Meet at Torvehallerne around 12:00"
    assert analysis.meetup_suggestion(alice, _rhythm("erin", venues=()), ["x"]) == "Coffee together at mutual favorite time"
    assert analysis.meetup_suggestion(alice, bob, []) is None


@pytest.mark.asyncio
async def test_analysis_requires_five_observations(services):
    memory_store.user_activities.extend(_obs(day, 9) for day in (1, 2, 3))
    memory_store.user_activities.append(_obs(3, 12, activity=ActivityType.LUNCH, location="Torvehallerne"))
    memory_store.user_activities.append(_obs(2, 9, user_id="bob"))
    stale = _obs(2, 9)
    stale.detected_at -= timedelta(days=40)
    memory_store.user_activities.append(stale)

    assert await services.rhythm.analyze_user_rhythm("alice") is None
    assert await services.rhythm.get_user_rhythm("alice") is None

    memory_store.user_activities.append(_obs(4, 8, 30))
    rhythm = await services.rhythm.analyze_user_rhythm("alice")

    assert rhythm is not None
    assert rhythm.wake_time == "08:07:00"
    assert rhythm.sleep_time is None
    assert rhythm.rhythm_type == RhythmType.UNKNOWN
    assert rhythm.favorite_venues == ["Torvehallerne"]
    stored = await services.rhythm.get_user_rhythm("alice")
    assert stored.user_id == "alice"
    assert stored.calculated_at is not None


@pytest.mark.asyncio
async def test_mirror_matches_use_pluggable_scorer(services, clock):
    scores = {"bob": 0.8, "carol": 0.55, "dave": 0.95}

    async def scorer(user, other):
        return scores[other.user_id]

    detector = RhythmDetector(services.activities, clock=clock, scorer=scorer)
    for user_id in ("alice", "bob", "carol", "dave"):
        memory_store.user_rhythms[user_id] = _rhythm(user_id)

    matches = await detector.find_mirror_matches("alice")

    assert [match.user_id for match in matches] == ["dave", "bob"]
    assert matches[0].suggested_meetup == "Meet at Cafe Norden around 8:00"
    assert set(memory_store.mirror_matches) == {canonical_pair("alice", "bob"), canonical_pair("alice", "dave")}
    assert memory_store.mirror_matches[("alice", "dave")].overlap_score == 0.95


@pytest.mark.asyncio
async def test_mirror_matches_default_to_store_compatibility(services):
    memory_store.user_rhythms["alice"] = _rhythm("alice")
    memory_store.user_rhythms["bob"] = _rhythm("bob")
    memory_store.user_rhythms["carol"] = _rhythm("carol", rhythm_type=RhythmType.NIGHT_OWL, peaks=(22,), venues=())

    matches = await services.rhythm.find_mirror_matches("alice")

    assert [match.user_id for match in matches] == ["bob"]
    assert matches[0].overlap_score == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_mirror_matches_without_profile_triggers_analysis(services):
    memory_store.user_rhythms["bob"] = _rhythm("bob")
    assert await services.rhythm.find_mirror_matches("alice") == []
