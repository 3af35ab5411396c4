# Shared utilities — request validators
from chartwatch.utils.validators import validate_date_range, validate_pattern, validate_ticker
