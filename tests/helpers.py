"""Row and CSV builders shared by the tests."""
import csv
import io

DEALER_COLUMNS = ["dealer_code", "dealer_name", "gst_number", "pan_number", "state", "email", "mobile"]
PAYOUT_COLUMNS = [
    "dealer_code",
    "payout_type",
    "base_amount",
    "incentive_amount",
    "deduction_amount",
    "recovery_amount",
]


def dealer_row(i: int, **overrides) -> dict:
    """A valid dealer row whose natural keys are unique per i."""
    row = {
        "dealer_code": f"DLR{i:03d}",
        "dealer_name": f"Dealer {i}",
        "gst_number": f"22AAAAA{i:04d}A1Z5",
        "pan_number": f"AAAAA{i:04d}A",
        "state": "MH",
        "email": f"dealer{i}@example.com",
        "mobile": "9876543210",
    }
    row.update(overrides)
    return row


def payout_row(dealer_code: str, base: str = "50000", incentive: str = "5000", **overrides) -> dict:
    row = {
        "dealer_code": dealer_code,
        "payout_type": "Monthly",
        "base_amount": base,
        "incentive_amount": incentive,
    }
    row.update(overrides)
    return row


def to_csv(rows: list[dict], columns: list[str] = None) -> bytes:
    columns = columns or list(rows[0].keys())
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=columns, extrasaction="ignore")
    writer.writeheader()
    writer.writerows(rows)
    return buffer.getvalue().encode("utf-8")


class FakeClock:
    """Monotonic clock stand-in that only moves when told to."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds
