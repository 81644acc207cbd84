"""Compliance Vault Meta information.
   Compliance Vault seals documents client-side before they reach a
   content-addressed storage network and proves their integrity on audit.
"""
__title__ = 'compliance_vault'
__description__ = (
   'Client-side encryption, integrity hashing and audit proofs '
   'for compliance-bound document storage.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2025 Compliance Vault Authors'
__author__ = 'Compliance Vault Authors'
__author_email__ = 'maintainers@compliance-vault.dev'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/compliance-vault/compliance-vault'
