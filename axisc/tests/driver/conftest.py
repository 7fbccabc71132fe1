# vim: set noexpandtab: -*- indent-tabs-mode: t -*-
import pytest

from axisc import driver


@pytest.fixture(scope="session", autouse=True)
def _pin_default_target_word_bits() -> None:
	"""
	CLI tests run against a 64-bit default target unless they pass
	--target-word-bits, so results do not depend on the host interpreter.
	"""
	driver._TEST_TARGET_WORD_BITS = 64
