"""
Signature module.

Validated signature images, Fernet-encrypted storage of those images, and
additive PDF signing (overlay merge) with optional signer name/role/date
labels and a default bottom-row layout.
"""
