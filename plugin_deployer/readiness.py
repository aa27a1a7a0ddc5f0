class ReadinessProbe:
    """Decides from a status command's result whether the service is up"""

    def is_ready(self, exit_code, output):
        raise NotImplementedError


class MarkerProbe(ReadinessProbe):
    """Ready when one status line mentions the component together with the marker.

    The status script's text is the only contract available, so this is a plain
    substring match.
    """

    def __init__(self, component, marker="running"):
        self.component = component
        self.marker = marker

    def is_ready(self, exit_code, output):
        for line in (output or "").splitlines():
            if self.component in line and self.marker in line:
                return True
        return False

    def __repr__(self):
        return f"MarkerProbe({self.component!r}, {self.marker!r})"


class ExitCodeProbe(ReadinessProbe):
    def is_ready(self, exit_code, output):
        return exit_code == 0

    def __repr__(self):
        return "ExitCodeProbe()"
