import random

import pytest

from services.workers.insights.core.types import FileDescriptor


CONTRACTS = ["Month-to-month", "One year", "Two year"]


def make_churn_rows(count: int = 30):
    rows = []
    for index in range(count):
        rows.append(
            {
                "customerID": f"CUST{index:04d}",
                "tenure": str(index + 1),
                "MonthlyCharges": f"{50 + index * 1.5:.2f}",
                "Contract": CONTRACTS[index % 3],
                "Churn": "Yes" if index % 4 == 0 else "No",
            }
        )
    return rows


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture
def churn_rows():
    return make_churn_rows()


@pytest.fixture
def sales_rows():
    regions = ["North", "South", "East", "West"]
    return [
        {
            "order_date": f"2024-{(index % 12) + 1:02d}-15",
            "region": regions[index % 4],
            "sales_amount": f"${1000 + index * 25:,}",
            "units": index % 7 + 1,
        }
        for index in range(40)
    ]


@pytest.fixture
def churn_file():
    return FileDescriptor(
        original_name="churn_data.csv",
        mime_type="text/csv",
        size=4096,
        storage_path="uploads/1700000000000-churn_data.csv",
        file_id="file-1",
    )
