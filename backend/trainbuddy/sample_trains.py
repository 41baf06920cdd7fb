"""Reference catalog loaded by ``python -m trainbuddy.seed``."""
from trainbuddy.schemas.train import Coach, Train


def _coaches(*layout: tuple[str, str, int]) -> list[Coach]:
    """Coaches in platform order, 50 m apart starting at 50 m."""
    return [
        Coach(coach_type=kind, coach_number=number, total_seats=seats, platform_position=50 * (i + 1))
        for i, (kind, number, seats) in enumerate(layout)
    ]


SAMPLE_TRAINS = [
    Train(
        train_number="12301",
        train_name="Rajdhani Express",
        route="New Delhi - Howrah",
        coaches=_coaches(
            ("firstClass", "H1", 18), ("ac", "A1", 64), ("ac", "A2", 64), ("ac", "A3", 64),
            ("ac", "B1", 72), ("ac", "B2", 72), ("ac", "B3", 72), ("ac", "B4", 72),
        ),
    ),
    Train(
        train_number="12951",
        train_name="Mumbai Rajdhani",
        route="Mumbai Central - New Delhi",
        coaches=_coaches(
            ("firstClass", "H1", 18), ("ac", "A1", 64), ("ac", "A2", 64),
            ("ac", "B1", 72), ("ac", "B2", 72), ("ac", "B3", 72),
        ),
    ),
    Train(
        train_number="12273",
        train_name="Duronto Express",
        route="New Delhi - Howrah",
        coaches=_coaches(
            ("ac", "A1", 64), ("ac", "A2", 64), ("ac", "B1", 72), ("ac", "B2", 72),
            ("ac", "B3", 72), ("sleeper", "S1", 72), ("sleeper", "S2", 72), ("sleeper", "S3", 72),
        ),
    ),
    Train(
        train_number="12423",
        train_name="Dibrugarh Rajdhani",
        route="New Delhi - Dibrugarh",
        coaches=_coaches(
            ("firstClass", "H1", 18), ("ac", "A1", 64), ("ac", "A2", 64), ("ac", "B1", 72),
            ("ac", "B2", 72), ("ac", "B3", 72), ("ac", "B4", 72),
        ),
    ),
    Train(
        train_number="12626",
        train_name="Kerala Express",
        route="New Delhi - Trivandrum",
        coaches=_coaches(
            ("ac", "A1", 64), ("ac", "A2", 64), ("ac", "B1", 72), ("sleeper", "S1", 72),
            ("sleeper", "S2", 72), ("sleeper", "S3", 72), ("sleeper", "S4", 72), ("sleeper", "S5", 72),
            ("general", "GS1", 108), ("general", "GS2", 108),
        ),
    ),
    Train(
        train_number="12002",
        train_name="Bhopal Shatabdi",
        route="New Delhi - Bhopal",
        coaches=_coaches(
            ("ac", "CC1", 78), ("ac", "CC2", 78), ("ac", "CC3", 78), ("ac", "CC4", 78), ("ac", "CC5", 78),
        ),
    ),
    Train(
        train_number="12430",
        train_name="Lucknow AC Express",
        route="New Delhi - Lucknow",
        coaches=_coaches(
            ("ac", "A1", 64), ("ac", "A2", 64), ("ac", "B1", 72), ("ac", "B2", 72),
            ("sleeper", "S1", 72), ("sleeper", "S2", 72), ("sleeper", "S3", 72),
        ),
    ),
]
