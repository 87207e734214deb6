"""
Sopsy manages SOPS encryption profiles and runs sops with them.

A profile is a named set of age recipients and sops options, stored in a
YAML config file. Sopsy picks a profile, builds the sops arguments for it
and runs the sops binary. All encryption and decryption is done by sops.

Profile selection priority:

\b
    1. -p/--profile flag (explicit)
    2. Directory mapping with auto enabled
    3. default_profile in the config file
    4. Interactive selection (fzf if available)

Create a config file and a profile:

\b
    $ sopsy config init
    $ sopsy profile add dev --age-key-file ~/.config/sops/age/keys.txt

Encrypt and decrypt files:

\b
    $ sopsy -p dev encrypt secrets.yaml > secrets.enc.yaml
    $ sopsy decrypt secrets.enc.yaml

Always use a profile inside a directory:

\b
    $ sopsy dir add dev ~/work/infra --auto

Set a default profile and export its key file for plain sops:

\b
    $ eval "$(sopsy profile use dev)"
"""

__version__ = '0.3.0'
