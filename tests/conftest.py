"""
Pytest Configuration and Fixtures

This module provides:
- Custom test output formatting
- Timestamped result file generation
- Shared fixtures for all tests (storage, users, services, Flask client)
- Test category organization
"""

import pytest
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List
from unittest.mock import patch

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

# Import test configuration
from tests.test_config import (
    CONFIG, EXPECTED, TEST_DATA, MESSAGES, TEST_CATEGORIES,
    get_sample_idea, get_all_sample_ideas,
)


# =============================================================================
# TEST RESULT FILE CONFIGURATION
# =============================================================================

RESULTS_DIR = PROJECT_ROOT / "test_results"


def get_result_filename() -> str:
    """Generate timestamped result filename."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return f"test_results_{timestamp}.txt"


def ensure_results_dir():
    """Create results directory if it doesn't exist."""
    RESULTS_DIR.mkdir(exist_ok=True)


# =============================================================================
# PYTEST HOOKS FOR CUSTOM OUTPUT
# =============================================================================

class TestResultCollector:
    """Collects test results for formatted output."""

    __test__ = False

    def __init__(self):
        self.results: List[Dict[str, Any]] = []
        self.start_time: datetime = None
        self.end_time: datetime = None
        self.categories: Dict[str, List[Dict]] = {}

    def add_result(self, nodeid: str, outcome: str, duration: float, message: str = ""):
        """Add a test result."""
        category = self._extract_category(nodeid)

        result = {
            "nodeid": nodeid,
            "name": self._extract_test_name(nodeid),
            "category": category,
            "outcome": outcome,
            "duration": duration,
            "message": message,
        }

        self.results.append(result)
        self.categories.setdefault(category, []).append(result)

    def _extract_category(self, nodeid: str) -> str:
        """Extract test category from nodeid (tests/test_storage.py::... -> storage)."""
        filename = nodeid.split("::")[0].split("/")[-1]
        return filename.replace("test_", "", 1).replace(".py", "")

    def _extract_test_name(self, nodeid: str) -> str:
        """Extract readable test name from nodeid."""
        parts = nodeid.split("::")
        if len(parts) >= 2:
            return parts[-1].replace("test_", "", 1).replace("_", " ").title()
        return nodeid

    def get_summary(self) -> Dict[str, int]:
        """Get test result summary."""
        passed = sum(1 for r in self.results if r["outcome"] == "passed")
        failed = sum(1 for r in self.results if r["outcome"] == "failed")
        skipped = sum(1 for r in self.results if r["outcome"] == "skipped")

        return {
            "total": len(self.results),
            "passed": passed,
            "failed": failed,
            "skipped": skipped,
        }


# Global collector instance
_collector = TestResultCollector()


def pytest_configure(config):
    """Register custom markers and start the collector."""
    config.addinivalue_line("markers", "config_validation: Configuration validation tests")
    config.addinivalue_line("markers", "cli_behavior: CLI interface tests")
    config.addinivalue_line("markers", "system_properties: End-to-end API guarantees")

    _collector.start_time = datetime.now()
    ensure_results_dir()


def pytest_runtest_logreport(report):
    """Called after each test phase."""
    if report.when == "call":
        _collector.add_result(
            nodeid=report.nodeid,
            outcome=report.outcome,
            duration=report.duration,
            message=str(report.longrepr) if report.longrepr else "",
        )


def pytest_sessionfinish(session, exitstatus):
    """Called after all tests complete."""
    _collector.end_time = datetime.now()

    report = generate_formatted_report(_collector)
    save_report(report)

    print_summary(_collector)


def generate_formatted_report(collector: TestResultCollector) -> str:
    """Generate a formatted test report."""
    lines = []

    lines.append("=" * 80)
    lines.append("IDEA PLATFORM - TEST RESULTS REPORT")
    lines.append("=" * 80)
    lines.append("")

    lines.append(f"Run Date:     {collector.start_time.strftime('%Y-%m-%d %H:%M:%S')}")
    if collector.end_time:
        duration = (collector.end_time - collector.start_time).total_seconds()
        lines.append(f"Duration:     {duration:.2f} seconds")
    lines.append("")

    summary = collector.get_summary()
    lines.append("-" * 40)
    lines.append("SUMMARY")
    lines.append("-" * 40)
    lines.append(f"Total Tests:  {summary['total']}")
    lines.append(f"Passed:       {summary['passed']} ✓")
    lines.append(f"Failed:       {summary['failed']} ✗")
    lines.append(f"Skipped:      {summary['skipped']} ○")
    lines.append(f"Pass Rate:    {(summary['passed'] / max(summary['total'], 1) * 100):.1f}%")
    lines.append("")

    lines.append("=" * 80)
    lines.append("RESULTS BY CATEGORY")
    lines.append("=" * 80)

    for category, results in sorted(collector.categories.items()):
        cat_info = TEST_CATEGORIES.get(category, {
            "name": category.replace("_", " ").title(),
            "description": "Test category",
            "protects_against": [],
        })

        passed = sum(1 for r in results if r["outcome"] == "passed")
        failed = sum(1 for r in results if r["outcome"] == "failed")

        lines.append("")
        lines.append(f"┌{'─' * 78}┐")
        lines.append(f"│ {cat_info['name']:<76} │")
        lines.append(f"├{'─' * 78}┤")
        lines.append(f"│ {cat_info['description']:<76} │")
        lines.append(f"│ Tests: {passed} passed, {failed} failed{' ' * (58 - len(str(passed)) - len(str(failed)))} │")
        lines.append(f"└{'─' * 78}┘")

        if cat_info.get("protects_against"):
            lines.append("  Protects Against:")
            for protection in cat_info["protects_against"]:
                lines.append(f"    • {protection}")

        lines.append("")
        lines.append("  Test Results:")

        for result in results:
            status = "✓" if result["outcome"] == "passed" else "✗" if result["outcome"] == "failed" else "○"
            duration_str = f"({result['duration']*1000:.0f}ms)"
            lines.append(f"    {status} {result['name']:<55} {duration_str:>10}")

            if result["outcome"] == "failed" and result["message"]:
                for msg_line in result["message"].split("\n")[:3]:
                    if msg_line.strip():
                        lines.append(f"      └─ {msg_line[:70]}")

        lines.append("")

    failed_tests = [r for r in collector.results if r["outcome"] == "failed"]
    if failed_tests:
        lines.append("=" * 80)
        lines.append("FAILED TESTS DETAIL")
        lines.append("=" * 80)

        for result in failed_tests:
            lines.append("")
            lines.append(f"FAILED: {result['nodeid']}")
            lines.append("-" * 40)
            if result["message"]:
                for line in result["message"].split("\n")[:10]:
                    lines.append(f"  {line}")
            lines.append("")

    lines.append("=" * 80)
    lines.append("END OF REPORT")
    lines.append("=" * 80)

    return "\n".join(lines)


def save_report(report: str):
    """Save report to timestamped file."""
    filepath = RESULTS_DIR / get_result_filename()

    with open(filepath, "w", encoding="utf-8") as f:
        f.write(report)

    print(f"\n📄 Test results saved to: {filepath}")


def print_summary(collector: TestResultCollector):
    """Print summary to console."""
    summary = collector.get_summary()

    print("\n" + "=" * 60)
    print("TEST RUN COMPLETE")
    print("=" * 60)
    print(f"Total: {summary['total']} | Passed: {summary['passed']} | Failed: {summary['failed']} | Skipped: {summary['skipped']}")
    print(f"Pass Rate: {(summary['passed'] / max(summary['total'], 1) * 100):.1f}%")
    print("=" * 60)


# =============================================================================
# SHARED FIXTURES
# =============================================================================

@pytest.fixture
def test_config():
    """Provide access to test configuration."""
    return CONFIG


@pytest.fixture
def expected_values():
    """Provide access to expected values."""
    return EXPECTED


@pytest.fixture
def test_data():
    """Provide access to test data."""
    return TEST_DATA


@pytest.fixture
def sample_idea_payload():
    """A single idea creation payload."""
    return get_sample_idea(0)


@pytest.fixture
def sample_idea_payloads():
    """All sample idea creation payloads."""
    return get_all_sample_ideas()


@pytest.fixture
def memory_storage():
    """A fresh in-memory storage backend."""
    from src.storage.memory import MemoryStorage
    return MemoryStorage()


@pytest.fixture
def signer():
    """Token signer with a fixed test key."""
    from src.services.auth import TokenSigner
    return TokenSigner(secret_key=CONFIG["secret_key"], max_age_days=7)


@pytest.fixture
def make_user(memory_storage):
    """Factory that stores a user and returns it."""
    from src.models.user import Role, User
    from src.services.auth import hash_password

    def _make(role: str = "author", admin: bool = False):
        data = TEST_DATA["users"][role]
        user = User(
            name=data["name"],
            email=data["email"],
            password_hash=hash_password(data["password"]),
            role=Role.ADMIN.value if admin else Role.USER.value,
        )
        return memory_storage.insert_user(user)

    return _make


@pytest.fixture
def author(make_user):
    return make_user("author")


@pytest.fixture
def reader(make_user):
    return make_user("reader")


@pytest.fixture
def admin(make_user):
    return make_user("admin", admin=True)


@pytest.fixture
def idea_service(memory_storage):
    from src.services.idea_service import IdeaService
    return IdeaService(memory_storage)


@pytest.fixture
def user_service(memory_storage, signer):
    from src.services.user_service import UserService
    return UserService(memory_storage, signer=signer)


@pytest.fixture
def client(memory_storage, signer):
    """Flask test client backed by the in-memory storage fixture."""
    import web.app as web_app
    from src.services.user_service import UserService

    web_app.app.config["TESTING"] = True

    with patch.object(web_app, "get_storage", return_value=memory_storage), \
         patch.object(web_app, "user_service", side_effect=lambda: UserService(memory_storage, signer=signer)):
        with web_app.app.test_client() as test_client:
            yield test_client


@pytest.fixture
def auth_headers(signer):
    """Build an Authorization header for a stored user."""
    def _headers(user) -> Dict[str, str]:
        return {"Authorization": f"Bearer {signer.issue(user.id)}"}
    return _headers
