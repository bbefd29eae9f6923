class RunCommandError(Exception):
    """Raised when a command run through run_command exits with a failure"""

    def __init__(self, error_msg: str, return_code: int):
        super().__init__(error_msg)
        self.error_msg = error_msg
        self.return_code = return_code

    def __str__(self):
        return f"{self.error_msg} (return code {self.return_code})"
