from datetime import date

import pytest

from p2p_tracker.classifier import classify_loan
from p2p_tracker.store import PortfolioStore


@pytest.fixture
def repeat_record():
    """Monthly amortizing loan: 12 x 110 for 1200 invested."""
    return {
        "description": "Car loan #1",
        "amount": 1200,
        "category": "auto",
        "firstPaymentDate": "2024-01-01",
        "lastPaymentDate": "2024-12-01",
        "isRepeat": True,
        "paymentAmount": 110,
        "frequency": "monthly",
    }


@pytest.fixture
def fixed_principal_record():
    """10 monthly principal payments of 100, 50 interest with the last one."""
    return {
        "description": "Invoice financing",
        "amount": 1000,
        "category": "business",
        "firstPaymentDate": "2024-01-01",
        "lastPaymentDate": "2024-10-01",
        "isFixedPrincipal": True,
        "principalPerPayment": 100,
        "totalInterest": 50,
        "fixedPrincipalFrequency": "monthly",
    }


@pytest.fixture
def bullet_record():
    """Six monthly interest payments of 5, principal of 500 at the end."""
    return {
        "description": "Bridge loan",
        "amount": 500,
        "category": "real_estate",
        "firstPaymentDate": "2024-01-01",
        "lastPaymentDate": "2024-06-01",
        "isBullet": True,
        "isRepeat": True,
        "paymentAmount": 5,
        "frequency": "monthly",
    }


@pytest.fixture
def single_record():
    return {
        "description": "Short-term note",
        "amount": 300,
        "category": "personal",
        "firstPaymentDate": "2024-03-01",
        "lastPaymentDate": "2024-09-01",
    }


@pytest.fixture
def repeat_loan(repeat_record):
    return classify_loan(repeat_record, loan_id=1)


@pytest.fixture
def fixed_principal_loan(fixed_principal_record):
    return classify_loan(fixed_principal_record, loan_id=2)


@pytest.fixture
def bullet_loan(bullet_record):
    return classify_loan(bullet_record, loan_id=3)


@pytest.fixture
def single_loan(single_record):
    return classify_loan(single_record, loan_id=4)


@pytest.fixture
def today():
    return date(2024, 6, 15)


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'portfolio.sqlite3'}"


@pytest.fixture
def store(database_url):
    return PortfolioStore(database_url)
