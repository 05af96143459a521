"""
Secure pillar encrypts and decrypts values inside YAML pillar files with GPG.

Only values are encrypted, so the structure of a file stays readable and
can be reviewed in version control. Encrypted values are stored as armored
PGP messages and files are written with the '#!yaml|gpg' renderer line.
Files containing include statements are skipped, as rewriting them would
break the includes.

Create a new file with encrypted values:

\b
    $ secure-pillar -k "Salt Master" create -n db_pass -s hunter2 -o new.sls

Add or replace values in a file:

\b
    $ secure-pillar -k "Salt Master" update -n api_key -s abc123 -f new.sls

Encrypt all plain text values in a file, or only those under an element:

\b
    $ secure-pillar -k "Salt Master" encrypt all -f us1.sls -u
    $ secure-pillar -k "Salt Master" -e secure_vars encrypt all -f us1.sls -u

Encrypt or decrypt every .sls file in a directory:

\b
    $ secure-pillar -k "Salt Master" encrypt recurse -D pillar/secure
    $ secure-pillar decrypt recurse -D pillar/secure

Decrypt a single value:

\b
    $ secure-pillar decrypt path -p "secure_vars:db_pass" -f new.sls

Re-encrypt everything with a new key:

\b
    $ secure-pillar -k "New Salt Master" rotate -D pillar/secure

Show the keys values were encrypted to:

\b
    $ secure-pillar keys all -f us1.sls
    $ secure-pillar keys recurse -D pillar/secure
"""

__version__ = '1.0.0'
