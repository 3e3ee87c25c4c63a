"""
pytest integration for chainbox.

Registered as a pytest plugin; provides the ``chainbox_test_handle`` fixture::

    def test_cluster(chainbox_test_handle):
        env = (
            TestEnvBuilder()
            .with_test_instance(chainbox_test_handle)
            .with_test_config(GlobalTestConfig())
            .with_cl_nodes(2)
            .with_standard_cleanup()
            .build()
        )
"""

from typing import Callable

import pytest

from chainbox.commands.utils import get_test_logger
from chainbox.testenv.cleanup import TestHandle


class PytestTestHandle(TestHandle):
    """TestHandle backed by pytest finalizers, which run last-added-first."""

    def __init__(self, request):
        self.request = request
        self.errors: list[str] = []
        self.logger = get_test_logger(self)
        # added first, so it runs after every cleanup registered later
        request.addfinalizer(self._report_errors)

    @property
    def name(self) -> str:
        return self.request.node.name

    def cleanup(self, fn: Callable[[], None]) -> None:
        self.request.addfinalizer(fn)

    def failed(self) -> bool:
        if self.errors:
            return True
        for phase in ("setup", "call"):
            report = getattr(self.request.node, f"rep_{phase}", None)
            if report is not None and report.failed:
                return True
        return False

    def error(self, message: str) -> None:
        self.errors.append(message)
        self.logger.error(message)

    def _report_errors(self) -> None:
        if self.errors:
            pytest.fail("\n".join(self.errors), pytrace=False)


@pytest.hookimpl(hookwrapper=True, tryfirst=True)
def pytest_runtest_makereport(item, call):
    outcome = yield
    report = outcome.get_result()
    setattr(item, f"rep_{report.when}", report)


@pytest.fixture
def chainbox_test_handle(request) -> PytestTestHandle:
    """Handle that scopes chainbox logging and cleanup to the current test."""
    return PytestTestHandle(request)
