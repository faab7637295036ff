import logging
import subprocess
import json
from pathlib import Path
from datetime import datetime
from typing import Optional, Tuple, Dict, Any

import exifread
from PIL import Image
from pymediainfo import MediaInfo

from .. import config
from ..models import FileInfo, MediaFile, MediaKind


class MetadataExtractor:
    """
    Builds the FileInfo an operator sees before deciding on a file.

    Strategies:
      - Images: 'exifread' for capture date and camera, Pillow for dimensions.
      - Video: 'pymediainfo' -> falls back to 'exiftool' (if installed).

    Every lookup is best effort: a file with no readable metadata still gets
    size, kind and modified time.
    """

    def describe(self, item: MediaFile) -> FileInfo:
        stat_result = item.path.stat()
        info = FileInfo(
            path=item.path,
            relative_path=item.relative_path,
            kind=item.kind,
            size_bytes=stat_result.st_size,
            modified_time=datetime.fromtimestamp(stat_result.st_mtime),
        )

        if item.kind is MediaKind.PHOTO:
            info.capture_datetime, info.camera_model = self.get_image_metadata(item.path)
            info.width, info.height = self.get_image_size(item.path)
        elif item.kind is MediaKind.VIDEO:
            info.capture_datetime, info.duration_sec, info.camera_model = self.get_video_metadata(item.path)

        return info

    def get_image_metadata(self, path: Path) -> Tuple[Optional[datetime], Optional[str]]:
        """
        Returns:
            (capture_datetime, camera_model)
        """
        try:
            with path.open('rb') as f:
                # details=False speeds up processing significantly
                tags = exifread.process_file(f, details=False)
        except Exception as e:
            logging.warning(f"ExifRead failed for {path}: {e}")
            return None, None

        if not tags:
            logging.debug(f"No EXIF tags found for {path}")
            return None, None

        camera = None
        if 'Image Model' in tags:
            camera = str(tags['Image Model']).strip()

        return self._parse_exif_date(tags), camera

    def get_image_size(self, path: Path) -> Tuple[Optional[int], Optional[int]]:
        try:
            with Image.open(path) as im:
                return im.width, im.height
        except Exception as e:
            # HEIC and most RAW formats need plugins Pillow doesn't ship
            logging.debug(f"Failed to get image size for {path}: {e}")
            return None, None

    def get_video_metadata(self, path: Path) -> Tuple[Optional[datetime], Optional[float], Optional[str]]:
        """
        Returns:
            (capture_datetime, duration_sec, camera_model)
        """
        # Strategy 1: MediaInfo
        try:
            mi_data = self._extract_mediainfo(path)
            if mi_data['dt'] or mi_data['duration']:
                return mi_data['dt'], mi_data['duration'], mi_data['camera']
        except Exception as e:
            logging.debug(f"MediaInfo failed for {path}: {e}")

        # Strategy 2: ExifTool (requires system install)
        try:
            et_data = self._extract_exiftool(path)
            if et_data['dt'] or et_data['duration']:
                return et_data['dt'], et_data['duration'], et_data['camera']
        except Exception as e:
            logging.debug(f"ExifTool failed for {path}: {e}")

        return None, None, None

    # --- Internal Extraction Helpers ---

    def _extract_mediainfo(self, path: Path) -> Dict[str, Any]:
        mi = MediaInfo.parse(str(path))
        data: Dict[str, Any] = {'dt': None, 'duration': None, 'camera': None}

        for track in mi.tracks:
            if track.track_type != "General":
                continue
            if getattr(track, "duration", None):
                # MediaInfo duration is in milliseconds
                data['duration'] = float(track.duration) / 1000.0

            for field in ("recorded_date", "encoded_date", "tagged_date"):
                val = getattr(track, field, None)
                if val:
                    dt = self._parse_flexible_date(val)
                    if dt:
                        data['dt'] = dt
                        break

            data['camera'] = (
                getattr(track, "performer", None) or
                getattr(track, "device_model", None)
            )
        return data

    def _extract_exiftool(self, path: Path) -> Dict[str, Any]:
        # -j = JSON output, -n = no formatting (seconds as float)
        cmd = ["exiftool", "-j", "-n", str(path)]
        out = subprocess.check_output(cmd, stderr=subprocess.DEVNULL, text=True, timeout=30)
        data_list = json.loads(out)

        data: Dict[str, Any] = {'dt': None, 'duration': None, 'camera': None}
        if not data_list:
            return data

        tags = data_list[0]
        for field in ("CreateDate", "CreationDate", "DateTimeOriginal", "MediaCreateDate"):
            if tags.get(field):
                dt = self._parse_flexible_date(str(tags[field]))
                if dt:
                    data['dt'] = dt
                    break

        if tags.get("Duration"):
            try:
                data['duration'] = float(tags["Duration"])
            except ValueError:
                pass

        data['camera'] = tags.get("Model") or tags.get("Make")
        return data

    def _parse_exif_date(self, tags) -> Optional[datetime]:
        for tag in config.DATE_TAGS:
            if tag in tags:
                try:
                    # EXIF format is usually "YYYY:MM:DD HH:MM:SS"
                    dt_str = str(tags[tag]).replace(':', '-', 2)
                    return datetime.strptime(dt_str, "%Y-%m-%d %H:%M:%S")
                except ValueError:
                    continue
        return None

    def _parse_flexible_date(self, dt_str: str) -> Optional[datetime]:
        """
        Handles ISO, 'UTC' suffixed and EXIF style dates.
        Returns a naive datetime object.
        """
        if not dt_str:
            return None

        clean = dt_str.replace("UTC", "").strip()

        try:
            return datetime.fromisoformat(clean).replace(tzinfo=None)
        except ValueError:
            pass

        try:
            clean_exif = clean.replace(":", "-", 2)
            if "." in clean_exif:
                clean_exif = clean_exif.split(".")[0]
            return datetime.strptime(clean_exif, "%Y-%m-%d %H:%M:%S")
        except ValueError:
            pass

        return None
