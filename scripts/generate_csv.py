"""Generate sample dealer and payout CSV files for testing the importer."""
import csv
import random
import string
import sys

STATES = ["MH", "KA", "TN", "DL", "GJ", "RJ", "UP", "WB", "TG", "KL"]
PAYOUT_TYPES = ["Monthly", "Quarterly", "Festive", "Volume"]

DEALER_HEADER = [
    "dealer_code",
    "dealer_name",
    "gst_number",
    "pan_number",
    "state",
    "email",
    "mobile",
    "city",
]
PAYOUT_HEADER = [
    "dealer_code",
    "payout_type",
    "base_amount",
    "incentive_amount",
    "deduction_amount",
    "recovery_amount",
]


def make_pan(i: int) -> str:
    letters = "".join(random.choices(string.ascii_uppercase, k=5))
    return f"{letters}{i % 10000:04d}{random.choice(string.ascii_uppercase)}"


def make_gst(pan: str) -> str:
    state_code = random.randint(1, 37)
    return f"{state_code:02d}{pan}{random.randint(1, 9)}Z{random.choice(string.ascii_uppercase)}"


def generate_dealers(num_rows: int, output_file: str) -> None:
    """
    Generate a dealer master CSV with random, well-formed rows.

    Args:
        num_rows: Number of dealer rows to generate
        output_file: Output CSV file path
    """
    with open(output_file, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(DEALER_HEADER)

        for i in range(num_rows):
            code = f"DLR{i + 1:06d}"
            pan = make_pan(i)
            writer.writerow(
                [
                    code,
                    f"Dealer {i + 1}",
                    make_gst(pan),
                    pan,
                    random.choice(STATES),
                    f"{code.lower()}@example.com",
                    f"9{random.randint(0, 999999999):09d}",
                    "",
                ]
            )

    print(f"✅ Successfully generated {num_rows:,} dealers in {output_file}")


def generate_payouts(num_rows: int, output_file: str) -> None:
    """
    Generate a payout CSV for dealer codes DLR000001..DLR{num_rows}.

    Args:
        num_rows: Number of payout rows to generate
        output_file: Output CSV file path
    """
    with open(output_file, "w", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(PAYOUT_HEADER)

        for i in range(num_rows):
            base = random.randint(10_000, 500_000)
            writer.writerow(
                [
                    f"DLR{i + 1:06d}",
                    random.choice(PAYOUT_TYPES),
                    base,
                    random.randint(0, base // 3),
                    random.choice(["", 0, random.randint(0, 5_000)]),
                    random.choice(["", 0, random.randint(0, 2_000)]),
                ]
            )

    print(f"✅ Successfully generated {num_rows:,} payout rows in {output_file}")


def main():
    """Main function to parse arguments and generate CSV."""
    if len(sys.argv) < 3 or sys.argv[1] not in ("dealers", "payouts"):
        print("Usage: python generate_csv.py <dealers|payouts> <num_rows> [output_file]")
        print("Example: python generate_csv.py dealers 10000 dealers_10k.csv")
        sys.exit(1)

    kind = sys.argv[1]
    num_rows = int(sys.argv[2])
    output_file = sys.argv[3] if len(sys.argv) > 3 else f"sample_{kind}_{num_rows}.csv"

    print(f"Generating {kind} CSV with {num_rows:,} rows...")
    if kind == "dealers":
        generate_dealers(num_rows, output_file)
    else:
        generate_payouts(num_rows, output_file)


if __name__ == "__main__":
    main()
