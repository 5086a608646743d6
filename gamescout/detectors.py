"""Per-platform detectors.

Each detector wires the locator, a manifest parser (when the launcher has one),
the executable resolver and the classifier together for one launcher. They are
stateless; everything they touch goes through the provider they are handed.
"""
from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Set

from .classify import (
    base_name,
    is_denied_executable,
    is_epic_non_game,
    is_steam_non_game,
    is_system_package,
    is_valid_game,
)
from .errors import ManifestParseError, describe
from .locator import LauncherSource, Located, RegistryProbe, expand, locate, read_registry
from .manifests import (
    EpicInstall,
    SteamManifest,
    clean_gog_title,
    parse_app_manifest,
    parse_installation_list,
    parse_library_folders,
    steam_icon_url,
    strip_marks,
    words_from_folder,
    xbox_package_title,
)
from .models import DetectionResult, GameRecord, Platform
from .provider import CapabilityProvider
from .scanning import Resolution, contains_game_files, directory_size_mb, pick_best_icon, resolve_executable
from .settings import ScanOptions
from .utils import normalize_path, path_key, safe_join

logger = logging.getLogger(__name__)


class PlatformDetector(ABC):
    platform: Platform
    source: LauncherSource
    exts = (".exe",)
    exe_excludes: tuple = ()

    def detect(self, provider: CapabilityProvider, options: Optional[ScanOptions] = None) -> DetectionResult:
        options = options or ScanOptions()
        located = locate(provider, self.source)
        if not located.found:
            logger.debug("%s: launcher not found", self.platform.value)
            return DetectionResult(self.platform)
        result = self.collect(provider, located, options)
        logger.info("%s: %d game(s)%s", self.platform.value, len(result.games),
                    f" (partial: {result.error})" if result.error else "")
        return result

    @abstractmethod
    def collect(self, provider: CapabilityProvider, located: Located, options: ScanOptions) -> DetectionResult:
        ...

    def resolve(self, provider: CapabilityProvider, install_dir: str, options: ScanOptions) -> Optional[Resolution]:
        return resolve_executable(provider, install_dir, exts=self.exts, max_depth=options.max_depth,
                                  extra_excludes=self.exe_excludes)

    def local_icon(self, provider: CapabilityProvider, install_dir: str) -> str:
        return pick_best_icon(provider, install_dir) or ""

    def __repr__(self):
        return f"<{type(self).__name__} {self.platform.value}>"


class DirectoryDetector(PlatformDetector):
    """Launchers with no catalog: every folder under a games root is a candidate."""

    def title(self, folder: str) -> str:
        return strip_marks(folder)

    def is_known_root(self, provider: CapabilityProvider, root: str) -> bool:
        return True

    def skip_folder(self, folder: str) -> bool:
        return False

    def collect(self, provider, located, options):
        games: List[GameRecord] = []
        errors: List[str] = []
        for root in located.games_roots:
            try:
                entries = provider.list_dir(root)
            except PermissionError as e:
                # WindowsApps and the like exist but are not listable without admin rights
                logger.debug("%s: %s is not readable, skipping: %s", self.platform.value, root, e)
                continue
            except OSError as e:
                logger.warning("%s: cannot list %s: %s", self.platform.value, root, e)
                errors.append(f"{root}: {describe(e)}")
                continue
            known = self.is_known_root(provider, root)
            for entry in sorted(entries, key=lambda e: e.name.lower()):
                if not entry.is_dir or self.skip_folder(entry.name):
                    continue
                record = self.examine(provider, root, entry.name, known, options)
                if record is not None:
                    games.append(record)
        return DetectionResult(self.platform, games, "; ".join(errors) or None)

    def examine(self, provider: CapabilityProvider, root: str, folder: str, known_root: bool,
                options: ScanOptions) -> Optional[GameRecord]:
        install = os.path.join(root, folder)
        res = self.resolve(provider, install, options)
        if res is None:
            logger.debug("%s: no executable under %s", self.platform.value, install)
            return None
        if not is_valid_game(res.executable, res.size_bytes, in_library_root=known_root,
                             min_bytes=options.min_exe_bytes):
            logger.debug("%s: rejected %s", self.platform.value, res.executable)
            return None
        return self.make_record(provider, install, folder, res, options)

    def make_record(self, provider: CapabilityProvider, install: str, folder: str,
                    res: Optional[Resolution], options: ScanOptions) -> GameRecord:
        return GameRecord(
            id=path_key(self.platform.slug, install),
            name=self.title(folder) or folder,
            platform=self.platform,
            install_path=install,
            executable_path=res.executable if res else install,
            process_name=res.process_name if res else "",
            size_mb=directory_size_mb(provider, install, options.max_depth),
            icon_url=self.local_icon(provider, install),
        )


# --- Steam ---------------------------------------------------------------------

class SteamDetector(PlatformDetector):
    platform = Platform.STEAM
    source = LauncherSource(
        "Steam",
        registry=(
            RegistryProbe("HKCU", r"Software\Valve\Steam", "SteamPath"),
            RegistryProbe("HKLM", r"SOFTWARE\WOW6432Node\Valve\Steam", "InstallPath"),
        ),
        default_roots=(
            ("programFilesX86", "Steam"),
            ("programFiles", "Steam"),
            ("home", ".steam", "steam"),
            ("home", ".local", "share", "Steam"),
            ("home", "Library", "Application Support", "Steam"),
        ),
    )
    exts = (".exe", ".x86_64", ".x86")

    def libraries(self, provider: CapabilityProvider, root: str) -> List[str]:
        """The Steam root plus every extra library folder, without duplicates."""
        paths = [root]
        for rel in (("steamapps", "libraryfolders.vdf"), ("config", "libraryfolders.vdf")):
            vdf_path = os.path.join(root, *rel)
            try:
                text = provider.read_text(vdf_path)
            except OSError as e:
                logger.debug("no library list at %s: %s", vdf_path, e)
                continue
            paths.extend(parse_library_folders(text))
            break

        out: List[str] = []
        seen: Set[str] = set()
        for p in paths:
            key = normalize_path(p)
            if key not in seen:
                seen.add(key)
                out.append(p)
        return out

    def collect(self, provider, located, options):
        games: List[GameRecord] = []
        errors: List[str] = []
        for library in self.libraries(provider, located.root):
            steamapps = os.path.join(library, "steamapps")
            try:
                entries = provider.list_dir(steamapps)
            except FileNotFoundError:
                logger.debug("library %s has no steamapps folder", library)
                continue
            except OSError as e:
                logger.warning("Steam: cannot list %s: %s", steamapps, e)
                errors.append(f"{steamapps}: {describe(e)}")
                continue

            claimed: Set[str] = set()
            for entry in sorted(entries, key=lambda e: e.name.lower()):
                low = entry.name.lower()
                if entry.is_dir or not (low.startswith("appmanifest_") and low.endswith(".acf")):
                    continue
                acf = os.path.join(steamapps, entry.name)
                try:
                    manifest = parse_app_manifest(provider.read_text(acf), acf)
                except ManifestParseError as e:
                    logger.warning("Steam: skipping %s", e)
                    continue
                except OSError as e:
                    logger.warning("Steam: cannot read %s: %s", acf, e)
                    errors.append(f"{acf}: {describe(e)}")
                    continue
                if manifest is None:
                    logger.debug("Steam: %s lacks appid/name/installdir", acf)
                    continue
                if is_steam_non_game(manifest.name):
                    logger.debug("Steam: %r is not a game", manifest.name)
                    continue
                install = safe_join(os.path.join(steamapps, "common"), manifest.install_dir)
                claimed.add(normalize_path(install))
                games.append(self._from_manifest(provider, manifest, install, options))

            games.extend(self._loose_folders(provider, steamapps, claimed, options))
        return DetectionResult(self.platform, games, "; ".join(errors) or None)

    def _from_manifest(self, provider, manifest: SteamManifest, install: str, options) -> GameRecord:
        res = None
        try:
            installed = provider.path_exists(install)
        except OSError:
            installed = False
        if installed:
            res = self.resolve(provider, install, options)
        return GameRecord(
            id=f"steam-{manifest.app_id}",
            name=strip_marks(manifest.name),
            platform=self.platform,
            install_path=install,
            executable_path=res.executable if res else install,
            process_name=res.process_name if res else "",
            size_mb=manifest.size_mb,
            icon_url=steam_icon_url(manifest.app_id),
            last_played=manifest.last_played,
        )

    def _loose_folders(self, provider, steamapps: str, claimed: Set[str], options) -> List[GameRecord]:
        """``steamapps/common`` folders that no manifest accounts for."""
        common = os.path.join(steamapps, "common")
        try:
            entries = provider.list_dir(common)
        except OSError:
            return []

        found = []
        for entry in sorted(entries, key=lambda e: e.name.lower()):
            install = os.path.join(common, entry.name)
            if not entry.is_dir or normalize_path(install) in claimed:
                continue
            title = words_from_folder(entry.name)
            if is_steam_non_game(title) or is_steam_non_game(entry.name):
                continue
            res = self.resolve(provider, install, options)
            if res is None or not is_valid_game(res.executable, res.size_bytes, in_library_root=True):
                continue
            found.append(GameRecord(
                id=path_key(self.platform.slug, install),
                name=title,
                platform=self.platform,
                install_path=install,
                executable_path=res.executable,
                process_name=res.process_name,
                size_mb=directory_size_mb(provider, install, options.max_depth),
                icon_url=self.local_icon(provider, install),
            ))
        return found


# --- Epic ----------------------------------------------------------------------

EPIC_MANIFESTS = (
    ("programData", "Epic", "UnrealEngineLauncher", "LauncherInstalled.dat"),
    ("localAppData", "EpicGamesLauncher", "Saved", "Config", "Windows", "GameInstallation.json"),
    ("localAppData", "EpicGamesLauncher", "Saved", "Config", "Windows", "InstallationList.json"),
    ("localAppData", "EpicGamesLauncher", "Saved", "Config", "Windows", "LauncherInstalled.dat"),
)


class EpicDetector(DirectoryDetector):
    platform = Platform.EPIC
    source = LauncherSource(
        "Epic Games",
        games_roots=(
            ("programFiles", "Epic Games"),
            ("programFilesX86", "Epic Games"),
            ("@drive", "Epic Games"),
        ),
        requires_root=False,
    )
    exe_excludes = ("epicgameslauncher", "epicwebhelper")

    def detect(self, provider, options=None):
        options = options or ScanOptions()
        installs = self.read_manifest(provider)
        if installs is None:
            logger.info("Epic: no usable installation list, scanning folders")
            return super().detect(provider, options)

        games = [g for g in (self._from_install(provider, i, options) for i in installs) if g is not None]
        logger.info("Epic: %d game(s)", len(games))
        return DetectionResult(self.platform, games)

    def read_manifest(self, provider: CapabilityProvider) -> Optional[List[EpicInstall]]:
        """Entries of the first installation list that parses; None when none does."""
        for template in EPIC_MANIFESTS:
            path = expand(provider, template)
            if not path:
                continue
            try:
                text = provider.read_text(path)
            except OSError as e:
                logger.debug("Epic: %s unavailable: %s", path, e)
                continue
            try:
                return parse_installation_list(text, path)
            except ManifestParseError as e:
                logger.warning("Epic: %s", e)
        return None

    def _from_install(self, provider, inst: EpicInstall, options) -> Optional[GameRecord]:
        if is_epic_non_game(inst.app_name):
            logger.debug("Epic: skipping component %s", inst.app_name)
            return None
        install = inst.install_location
        exe, proc = "", ""
        if inst.launch_executable:
            exe = safe_join(install, inst.launch_executable)
            proc = base_name(exe)
        if not exe or is_denied_executable(exe):
            res = self.resolve(provider, install, options)
            exe, proc = (res.executable, res.process_name) if res else (install, "")
        return GameRecord(
            id=f"epic-{inst.app_name}" if inst.app_name else path_key(self.platform.slug, install),
            name=strip_marks(inst.display_name),
            platform=self.platform,
            install_path=install,
            executable_path=exe,
            process_name=proc,
            size_mb=directory_size_mb(provider, install, options.max_depth),
            icon_url=self.local_icon(provider, install),
        )

    def skip_folder(self, folder):
        return "launcher" in folder.lower() or folder.lower() == "directxredist"

    def title(self, folder):
        return words_from_folder(strip_marks(folder))


# --- Xbox / UWP ----------------------------------------------------------------

VENDOR_PACKAGE_PREFIXES = ("microsoft.", "bethesdasoftworks.", "mojang.")
GAME_PACKAGE_HINTS = ("game", "xbox", "minecraft", "forza", "halo", "gears", "flightsimulator")
KNOWN_XBOX_ROOTS = ("xboxgames", "modifiablewindowsapps")


class XboxDetector(DirectoryDetector):
    platform = Platform.XBOX
    source = LauncherSource(
        "Xbox",
        games_registry=(RegistryProbe("HKLM", r"SOFTWARE\Microsoft\GamingServices", "GameInstallPath"),),
        games_roots=(
            ("@drive", "XboxGames"),
            ("@D:", "XboxGames"),
            ("@E:", "XboxGames"),
            ("programFiles", "WindowsApps"),
            ("programFiles", "ModifiableWindowsApps"),
        ),
        requires_root=False,
    )

    def title(self, folder):
        return xbox_package_title(folder)

    def is_known_root(self, provider, root):
        if base_name(root.rstrip("\\/")).lower() in KNOWN_XBOX_ROOTS:
            return True
        configured = read_registry(provider, self.source.games_registry[0])
        return bool(configured) and normalize_path(configured) == normalize_path(root)

    def examine(self, provider, root, folder, known_root, options):
        # OS packages are dropped on the name alone, before touching the disk
        if is_system_package(folder):
            return None
        install = os.path.join(root, folder)
        vendor = folder.lower().startswith(VENDOR_PACKAGE_PREFIXES)
        if not (known_root or vendor or contains_game_files(provider, install)):
            return None

        res = self.resolve(provider, install, options)
        if not known_root:
            if res is not None:
                if not is_valid_game(res.executable, res.size_bytes, in_library_root=False,
                                     min_bytes=options.min_exe_bytes):
                    return None
            elif not any(h in folder.lower() for h in GAME_PACKAGE_HINTS):
                return None
        return self.make_record(provider, install, folder, res, options)


# --- unstructured launchers ----------------------------------------------------

class OriginDetector(DirectoryDetector):
    platform = Platform.ORIGIN
    source = LauncherSource(
        "Origin",
        registry=(
            RegistryProbe("HKLM", r"SOFTWARE\WOW6432Node\Origin", "ClientPath", is_file=True),
            RegistryProbe("HKLM", r"SOFTWARE\Electronic Arts\EA Desktop", "InstallLocation"),
        ),
        default_roots=(
            ("programFilesX86", "Origin"),
            ("programFiles", "Electronic Arts", "EA Desktop"),
        ),
        games_roots=(
            ("programFilesX86", "Origin Games"),
            ("programFiles", "Origin Games"),
            ("programFiles", "EA Games"),
            ("@drive", "Origin Games"),
            ("@drive", "EA Games"),
            ("home", "Origin Games"),
        ),
    )
    exe_excludes = ("originthinsetup", "eadesktop", "eaanticheat", "activation")


class BattleNetDetector(DirectoryDetector):
    platform = Platform.BATTLE_NET
    source = LauncherSource(
        "Battle.net",
        registry=(RegistryProbe("HKLM", r"SOFTWARE\WOW6432Node\Blizzard Entertainment\Battle.net", "InstallPath"),),
        default_roots=(
            ("programFilesX86", "Battle.net"),
            ("programFiles", "Battle.net"),
        ),
        games_roots=(
            ("@root", "Games"),
            ("@drive", "Battle.net Games"),
            ("home", "Battle.net Games"),
        ),
    )
    exe_excludes = ("battle.net", "agent", "blizzard error", "blizzardbrowser")


class GOGDetector(DirectoryDetector):
    platform = Platform.GOG
    source = LauncherSource(
        "GOG Galaxy",
        registry=(
            RegistryProbe("HKLM", r"SOFTWARE\WOW6432Node\GOG.com\GalaxyClient\paths", "client"),
            RegistryProbe("HKLM", r"SOFTWARE\WOW6432Node\GOG.com\GalaxyClient", "InstallPath"),
            RegistryProbe("HKLM", r"SOFTWARE\GOG.com\GalaxyClient", "InstallPath"),
        ),
        default_roots=(
            ("programFilesX86", "GOG Galaxy"),
            ("programFiles", "GOG Galaxy"),
        ),
        games_roots=(
            ("@root", "Games"),
            ("@drive", "GOG Games"),
            ("@D:", "GOG Games"),
            ("home", "GOG Games"),
        ),
    )
    exe_excludes = ("galaxy",)

    def title(self, folder):
        return clean_gog_title(folder)


class UplayDetector(DirectoryDetector):
    platform = Platform.UBISOFT_CONNECT
    source = LauncherSource(
        "Ubisoft Connect",
        registry=(RegistryProbe("HKLM", r"SOFTWARE\WOW6432Node\Ubisoft\Launcher", "InstallDir"),),
        default_roots=(
            ("programFilesX86", "Ubisoft", "Ubisoft Game Launcher"),
            ("programFiles", "Ubisoft", "Ubisoft Game Launcher"),
        ),
        games_registry=(RegistryProbe("HKLM", r"SOFTWARE\WOW6432Node\Ubisoft\Launcher", "InstallsPath"),),
        games_roots=(
            ("@root", "games"),
            ("@drive", "Ubisoft Games"),
            ("home", "Ubisoft Games"),
        ),
    )
    exe_excludes = ("upc", "uplay", "ubisoft")

    def title(self, folder):
        return words_from_folder(strip_marks(folder))


DETECTORS: Dict[Platform, PlatformDetector] = {
    Platform.STEAM: SteamDetector(),
    Platform.EPIC: EpicDetector(),
    Platform.XBOX: XboxDetector(),
    Platform.ORIGIN: OriginDetector(),
    Platform.BATTLE_NET: BattleNetDetector(),
    Platform.GOG: GOGDetector(),
    Platform.UBISOFT_CONNECT: UplayDetector(),
}
