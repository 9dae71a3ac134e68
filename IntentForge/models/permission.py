"""
Permission protection levels.

Used to drop components guarded by permissions an attacker app could not obtain.
"""

from __future__ import annotations

from enum import Enum


class PermissionCategory(str, Enum):
    """Protection levels of Android permissions, weakest first."""

    NORMAL = "normal"
    DANGEROUS = "dangerous"
    SIGNATURE = "signature"
    PRIVILEGED = "privileged"

    @property
    def rank(self) -> int:
        return _RANKS[self]

    @classmethod
    def from_protection_level(cls, raw: str) -> PermissionCategory:
        """Parse an `android:protectionLevel` value.

        Accepts symbolic values (`signature|privileged`, `signatureOrSystem`) and
        the hex form emitted by binary manifest decoders (`0x2`).
        """
        value = raw.strip()
        if value.lower().startswith("0x"):
            try:
                base = int(value, 16) & 0xF
            except ValueError:
                return cls.NORMAL
            return _HEX_LEVELS.get(base, cls.NORMAL)

        parts = {p.strip().lower() for p in value.split("|")}
        if "privileged" in parts or "signatureorsystem" in parts:
            return cls.PRIVILEGED
        if "signature" in parts:
            return cls.SIGNATURE
        if "dangerous" in parts:
            return cls.DANGEROUS
        return cls.NORMAL


_RANKS = {
    PermissionCategory.NORMAL: 1,
    PermissionCategory.DANGEROUS: 2,
    PermissionCategory.SIGNATURE: 3,
    PermissionCategory.PRIVILEGED: 4,
}

_HEX_LEVELS = {
    0x0: PermissionCategory.NORMAL,
    0x1: PermissionCategory.DANGEROUS,
    0x2: PermissionCategory.SIGNATURE,
    0x3: PermissionCategory.PRIVILEGED,
}

# Framework permissions commonly guarding exported components
FRAMEWORK_PERMISSIONS: dict[str, PermissionCategory] = {
    "android.permission.INTERNET": PermissionCategory.NORMAL,
    "android.permission.RECEIVE_BOOT_COMPLETED": PermissionCategory.NORMAL,
    "android.permission.VIBRATE": PermissionCategory.NORMAL,
    "android.permission.WAKE_LOCK": PermissionCategory.NORMAL,
    "android.permission.FOREGROUND_SERVICE": PermissionCategory.NORMAL,
    "com.android.alarm.permission.SET_ALARM": PermissionCategory.NORMAL,
    "android.permission.CAMERA": PermissionCategory.DANGEROUS,
    "android.permission.RECORD_AUDIO": PermissionCategory.DANGEROUS,
    "android.permission.READ_CONTACTS": PermissionCategory.DANGEROUS,
    "android.permission.WRITE_CONTACTS": PermissionCategory.DANGEROUS,
    "android.permission.ACCESS_FINE_LOCATION": PermissionCategory.DANGEROUS,
    "android.permission.ACCESS_COARSE_LOCATION": PermissionCategory.DANGEROUS,
    "android.permission.READ_EXTERNAL_STORAGE": PermissionCategory.DANGEROUS,
    "android.permission.WRITE_EXTERNAL_STORAGE": PermissionCategory.DANGEROUS,
    "android.permission.READ_PHONE_STATE": PermissionCategory.DANGEROUS,
    "android.permission.CALL_PHONE": PermissionCategory.DANGEROUS,
    "android.permission.READ_SMS": PermissionCategory.DANGEROUS,
    "android.permission.RECEIVE_SMS": PermissionCategory.DANGEROUS,
    "android.permission.SEND_SMS": PermissionCategory.DANGEROUS,
    "android.permission.READ_CALENDAR": PermissionCategory.DANGEROUS,
    "android.permission.WRITE_CALENDAR": PermissionCategory.DANGEROUS,
    "android.permission.BODY_SENSORS": PermissionCategory.DANGEROUS,
    "android.permission.POST_NOTIFICATIONS": PermissionCategory.DANGEROUS,
    "android.permission.BIND_JOB_SERVICE": PermissionCategory.SIGNATURE,
    "android.permission.BIND_ACCESSIBILITY_SERVICE": PermissionCategory.SIGNATURE,
    "android.permission.BIND_NOTIFICATION_LISTENER_SERVICE": PermissionCategory.SIGNATURE,
    "android.permission.BIND_DEVICE_ADMIN": PermissionCategory.SIGNATURE,
    "android.permission.BIND_INPUT_METHOD": PermissionCategory.SIGNATURE,
    "android.permission.BIND_VPN_SERVICE": PermissionCategory.SIGNATURE,
    "android.permission.BIND_WALLPAPER": PermissionCategory.SIGNATURE,
    "android.permission.BIND_TEXT_SERVICE": PermissionCategory.SIGNATURE,
    "android.permission.BIND_QUICK_SETTINGS_TILE": PermissionCategory.SIGNATURE,
    "android.permission.BIND_AUTOFILL_SERVICE": PermissionCategory.SIGNATURE,
    "android.permission.BIND_REMOTEVIEWS": PermissionCategory.SIGNATURE,
    "com.google.android.c2dm.permission.SEND": PermissionCategory.SIGNATURE,
    "android.permission.BROADCAST_SMS": PermissionCategory.PRIVILEGED,
    "android.permission.BROADCAST_WAP_PUSH": PermissionCategory.PRIVILEGED,
    "android.permission.INSTALL_PACKAGES": PermissionCategory.PRIVILEGED,
    "android.permission.MANAGE_USERS": PermissionCategory.PRIVILEGED,
}


def protection_level(
    permission: str,
    declared: dict[str, PermissionCategory] | None = None,
) -> PermissionCategory:
    """Resolve a permission's protection level.

    Permissions declared by the scanned manifests take precedence over the
    framework table; anything unknown is treated as normal.
    """
    if declared and permission in declared:
        return declared[permission]
    return FRAMEWORK_PERMISSIONS.get(permission, PermissionCategory.NORMAL)


def highest_protection_level(
    permissions: list[str],
    declared: dict[str, PermissionCategory] | None = None,
) -> PermissionCategory:
    """Strongest protection among `permissions`; no permission counts as normal."""
    levels = [protection_level(p, declared) for p in permissions]
    if not levels:
        return PermissionCategory.NORMAL
    return max(levels, key=lambda level: level.rank)
