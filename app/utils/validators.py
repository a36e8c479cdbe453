from typing import Optional, Tuple


def validate_application_id(application_id) -> Tuple[bool, Optional[str]]:
    """Validate an application identifier from a request body"""
    if not application_id or not isinstance(application_id, str):
        return False, "applicationId is required"
    if len(application_id) > 36:
        return False, "Invalid applicationId"
    return True, None


def validate_full_name(full_name) -> Tuple[bool, Optional[str]]:
    """Validate the full legal name used as the consent signature"""
    if not isinstance(full_name, str) or len(full_name.strip()) < 2:
        return False, "Full legal name is required as digital signature"
    if len(full_name.strip()) > 200:
        return False, "Full legal name is too long"
    return True, None


def validate_consent_flag(consent_given) -> Tuple[bool, Optional[str]]:
    """Consent must be an explicit boolean true"""
    if consent_given is not True:
        return False, "You must agree to the background check authorization to proceed"
    return True, None
