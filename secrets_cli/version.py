"""Secrets CLI Meta information.
   Secrets CLI keeps GPG-encrypted, access-controlled vaults
   inside a Git repository.
"""
__title__ = 'secrets_cli'
__description__ = (
   'Multi-user secrets management for Git repositories, '
   'backed by GPG and pass.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2024 NuevaNext'
__author__ = 'NuevaNext'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/NuevaNext/secrets-cli'
