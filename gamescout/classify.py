"""Is this artifact a game? Denylists, the Steam title blacklist, the size floor and the allowlist."""
import re
from typing import Optional

# Exact file names that are never a game, whatever else we know about them.
NON_GAME_EXECUTABLES = frozenset({
    "chrome.exe", "firefox.exe", "msedge.exe", "opera.exe", "brave.exe", "iexplore.exe",
    "explorer.exe", "cmd.exe", "powershell.exe", "pwsh.exe", "conhost.exe", "svchost.exe",
    "rundll32.exe", "regedit.exe", "taskmgr.exe", "notepad.exe", "calc.exe", "mspaint.exe",
    "winword.exe", "excel.exe", "outlook.exe", "powerpnt.exe", "onedrive.exe",
    "code.exe", "devenv.exe", "git.exe", "bash.exe", "node.exe", "npm.exe", "python.exe",
    "pythonw.exe", "java.exe", "javaw.exe",
    "discord.exe", "slack.exe", "teams.exe", "zoom.exe", "skype.exe", "spotify.exe",
    "obs64.exe", "obs32.exe",
    "setup.exe", "installer.exe", "uninstall.exe", "unins000.exe", "update.exe", "updater.exe",
    "vcredist_x64.exe", "vcredist_x86.exe", "vc_redist.x64.exe", "vc_redist.x86.exe",
    "dxsetup.exe", "dxwebsetup.exe", "dotnetfx.exe",
    "steam.exe", "steamwebhelper.exe", "steamerrorreporter.exe", "steamservice.exe",
    "epicgameslauncher.exe", "epicwebhelper.exe", "galaxyclient.exe", "galaxyclient helper.exe",
    "upc.exe", "uplaywebcore.exe", "origin.exe", "eadesktop.exe", "battle.net.exe",
    "agent.exe", "blizzard error.exe", "crashreportclient.exe", "unitycrashhandler64.exe",
    "unitycrashhandler32.exe",
})

# Substrings in an executable name that mark it as not the thing you launch to play.
NON_LAUNCH_PATTERNS = (
    "unins", "uninstall", "setup", "install", "launcher", "config", "settings",
    "crash", "bugreport", "bug_report", "reporter", "helper", "redist", "vcredist",
    "dxsetup", "dotnet", "prereq", "updater", "patcher", "touchup", "cleanup",
)

# Steam catalog entries that are tools, runtimes and friends rather than games.
STEAM_NON_GAME_TITLES = (
    "redistributable", "redistributables", "steamworks common", "steamworks shared",
    "steamvr", "steam linux runtime", "proton ", "proton experimental", "proton hotfix",
    " sdk ", "dedicated server", "authoring tools", "mod tools", "workshop tool",
    "level editor", " benchmark ", "soundtrack", "playtest", "test build", " demo ",
    " runtime ", "directx", "vcredist", ".net framework", "physx",
)

# Windows package name prefixes that are OS components, never games.
SYSTEM_PACKAGE_PREFIXES = (
    "microsoft.windows", "microsoftwindows.", "windows.", "microsoft.vclibs",
    "microsoft.net.", "microsoft.ui.xaml", "microsoft.services.store", "microsoft.directx",
    "microsoft.advertising", "microsoft.desktopappinstaller", "microsoft.storepurchaseapp",
    "microsoft.windowsstore", "microsoft.gamingservices", "microsoft.gamingapp",
    "microsoft.xbox.tcui", "microsoft.xboxidentityprovider", "microsoft.xboxgameoverlay",
    "microsoft.xboxgamingoverlay", "microsoft.xboxspeechtotextoverlay", "microsoft.xboxapp",
    "microsoft.office", "microsoft.microsoftofficehub", "microsoft.microsoftedge",
    "microsoft.edge", "microsoft.bing", "microsoft.webmediaextensions",
    "microsoft.webpimageextension", "microsoft.heifimageextension", "microsoft.vp9videoextensions",
    "microsoft.hevcvideoextension", "microsoft.rawimageextension", "microsoft.paint",
    "microsoft.mspaint", "microsoft.screensketch", "microsoft.people", "microsoft.photos",
    "microsoft.windowscamera", "microsoft.windowscalculator", "microsoft.windowsnotepad",
    "microsoft.windowsterminal", "microsoft.zunemusic", "microsoft.zunevideo",
    "microsoft.yourphone", "microsoft.getstarted", "microsoft.gethelp", "microsoft.todos",
    "microsoft.powerautomate", "microsoft.onedrive", "microsoft.skypeapp",
    "microsoft.549981c3f5f10", "microsoft.lockapp", "microsoft.aad", "microsoft.accountscontrol",
    "microsoft.ecapp", "microsoft.sechealthui", "microsoft.win32webviewhost",
    "nvidiacorp.", "realtek", "appup.intel", "dolbylaboratories.", "advancedmicrodevices",
)

# Folder-name markers for things that sit next to games but are not games.
NON_GAME_FOLDER_MARKERS = (
    "stub", "dlc", "tracker", "cross-gen", "gamesave", "audio", "control panel",
    "driver", "realtek", "nvidia",
)

# Loose signals that a binary is a game, for candidates nobody vouches for.
GAME_NAME_PATTERNS = tuple(re.compile(p, re.IGNORECASE) for p in (
    r"game", r"play", r"launcher", r"client", r"engine", r"shipping",
    r"unity", r"unreal", r"ue4", r"ue5", r"godot", r"cryengine", r"source",
    r"steam", r"epic", r"origin", r"galaxy", r"uplay", r"battle\.net",
    r"rpg", r"fps", r"mmo", r"moba", r"rts", r"racing", r"sport",
    r"ubisoft", r"bethesda", r"rockstar", r"blizzard", r"bioware", r"capcom",
    r"bandai", r"sega", r"konami", r"square", r"2k", r"activision", r"cdpr", r"redengine",
    r"win64", r"x64", r"dx1[12]",
))


def base_name(path: str) -> str:
    return re.split(r"[\\/]", path)[-1]


def is_denied_executable(file_name: str) -> bool:
    return base_name(file_name).lower() in NON_GAME_EXECUTABLES


def is_non_launch_name(file_name: str, extra=()) -> bool:
    low = base_name(file_name).lower()
    return any(p in low for p in NON_LAUNCH_PATTERNS) or any(p in low for p in extra)


def is_steam_non_game(title: str) -> bool:
    low = f" {title.lower()} "
    return any(p in low for p in STEAM_NON_GAME_TITLES)


def is_system_package(folder_name: str) -> bool:
    low = folder_name.lower()
    if low.startswith(SYSTEM_PACKAGE_PREFIXES):
        return True
    return any(m in low for m in NON_GAME_FOLDER_MARKERS)


def matches_game_pattern(file_name: str) -> bool:
    name = base_name(file_name)
    return any(rx.search(name) for rx in GAME_NAME_PATTERNS)


def is_valid_game(executable: str, size_bytes: Optional[int], *, in_library_root: bool,
                  min_bytes: int = 10 * 1024 * 1024) -> bool:
    """Decide whether a resolved executable is a real game.

    The denylist always wins. Living under a recognised games root is enough on its
    own; otherwise a known size must clear the floor, and an unknown size needs a
    game-looking name.
    """
    if is_denied_executable(executable):
        return False
    if in_library_root:
        return True
    if size_bytes is not None:
        return size_bytes >= min_bytes
    return matches_game_pattern(executable)


# Epic AppName fragments for engine builds, editors and launcher components.
EPIC_NON_GAME_APP_MARKERS = ("unrealengine", "editor", "launcher", "tool", "sdk")


def is_epic_non_game(app_name: str) -> bool:
    low = (app_name or "").lower()
    return low.startswith("ue_") or any(m in low for m in EPIC_NON_GAME_APP_MARKERS)
