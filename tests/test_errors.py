from polyglot_runner.errors import (
    ExecutionTimeoutError,
    InvalidRequestError,
    SandboxError,
    ToolchainNotFoundError,
    UnsupportedLanguageError,
)


def test_timeout_message_names_the_limit() -> None:
    err = ExecutionTimeoutError(10)
    assert str(err) == "Execution timeout (10s limit)"
    assert isinstance(err, TimeoutError)
    assert isinstance(err, SandboxError)


def test_toolchain_not_found_is_an_os_error() -> None:
    err = ToolchainNotFoundError("javac")
    assert isinstance(err, OSError)
    assert str(err) == "Failed to start 'javac': command not found"
    assert err.command == "javac"


def test_invalid_request_is_a_value_error() -> None:
    assert isinstance(InvalidRequestError("Code is required"), ValueError)


def test_unsupported_language_message_lists_supported() -> None:
    err = UnsupportedLanguageError("ruby", ["python", "java"])
    assert str(err) == "Unsupported language: 'ruby'. Supported: python, java"
    assert err.language == "ruby"
