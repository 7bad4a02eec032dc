import pytest

from src.ojt_tracker.ojt_tracker.common.validators import require_positive_id
from src.ojt_tracker.ojt_tracker.core.exceptions import ValidationError


def test_require_positive_id_parses_strings():
    assert require_positive_id("12", "student_id") == 12


@pytest.mark.parametrize("value", [None, "abc", 0, -3])
def test_require_positive_id_rejects_invalid(value):
    with pytest.raises(ValidationError):
        require_positive_id(value, "student_id")
