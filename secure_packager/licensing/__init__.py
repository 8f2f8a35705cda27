# License token issuance and verification
from secure_packager.licensing.issuer import LicenseIssuer as LicenseIssuer
from secure_packager.licensing.issuer import issue_token as issue_token
from secure_packager.licensing.verifier import LicenseVerifier as LicenseVerifier
from secure_packager.licensing.verifier import verify_token as verify_token

__all__ = ["LicenseIssuer", "LicenseVerifier", "issue_token", "verify_token"]
