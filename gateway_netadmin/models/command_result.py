import json
from json import JSONDecodeError
from typing import Union


class CommandResult:
    """Returned by run_command"""

    def __init__(self, stdout: str, stderr: str, return_code: int):
        self.stdout = stdout
        self.stderr = stderr
        self.return_code = return_code
        self.success = self.return_code == 0

    def output_from_json(self) -> Union[dict, list, int, float, str, None]:
        try:
            return json.loads(self.stdout)
        except JSONDecodeError:
            return None

    def grep_stdout_for_string(
        self, string: str, negate: bool = False, split: bool = False
    ) -> Union[str, list[str]]:
        if negate:
            filtered = [x for x in self.stdout.split("\n") if string not in x]
        else:
            filtered = [x for x in self.stdout.split("\n") if string in x]
        return filtered if split else "\n".join(filtered)

    def key_values(self, separator: str = "=") -> dict[str, str]:
        """
        Parses "key=value" style output, such as that of `wpa_cli status`.
        Lines without the separator are ignored.
        """
        values = {}
        for line in self.stdout.split("\n"):
            if separator not in line:
                continue
            key, value = line.split(separator, 1)
            values[key.strip()] = value.strip()
        return values

    def __repr__(self):
        return f"CommandResult(return_code={self.return_code}, stdout={self.stdout!r}, stderr={self.stderr!r})"
