import io

import pytest
from PIL import Image

from gamescout.provider import MemoryProvider

WINDOWS_PATHS = {
    "home": "C:/Users/player",
    "localAppData": "C:/Users/player/AppData/Local",
    "programFiles": "C:/Program Files",
    "programFilesX86": "C:/Program Files (x86)",
    "programData": "C:/ProgramData",
    "systemDrive": "C:",
}

MB = 1024 * 1024


@pytest.fixture
def machine():
    """An empty simulated Windows box; tests add launchers and games to it."""
    return MemoryProvider(well_known=dict(WINDOWS_PATHS))


def acf(appid, name=None, installdir=None, size=0, last_played=0):
    lines = ['"AppState"', "{", f'\t"appid"\t\t"{appid}"']
    if name is not None:
        lines.append(f'\t"name"\t\t"{name}"')
    if installdir is not None:
        lines.append(f'\t"installdir"\t\t"{installdir}"')
    lines.append(f'\t"SizeOnDisk"\t\t"{size}"')
    lines.append(f'\t"LastPlayed"\t\t"{last_played}"')
    lines.append("}")
    return "\n".join(lines) + "\n"


def png(w=256, h=256):
    buf = io.BytesIO()
    Image.new("RGB", (w, h), (12, 34, 56)).save(buf, format="PNG")
    return buf.getvalue()
