"""Process exit codes used by the shardbase CLI."""

SUCCESS = 0
GENERAL_ERROR = 1
USAGE_ERROR = 2
DATABASE_ERROR = 3
BUILD_ERROR = 4
VALIDATION_FAILED = 5
EXECUTION_FAILURE = 6
