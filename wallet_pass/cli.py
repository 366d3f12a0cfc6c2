# wallet_pass/cli.py

"""
Wallet Pass CLI

Command-line front end for signing raw pass directories and checking signed
passes:

    wallet-pass sign -p StoreCard.pass -c pass.p12 -w secret -i wwdr.pem
    wallet-pass verify StoreCard.pkpass

Paths and the key-store password may also come from WALLET_* environment
variables (see wallet_pass.config).
"""

import logging
import sys

import click

from wallet_pass.config import SigningConfig
from wallet_pass.exceptions import PassError
from wallet_pass.exporter import sign_directory, verify_archive

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Log debug output.')
def wallet(verbose):
    """Build and check Apple Wallet passes."""
    level = logging.DEBUG if verbose else getattr(logging, SigningConfig().log_level, logging.WARNING)
    logging.basicConfig(level=level, format=LOG_FORMAT)


@wallet.command()
@click.option('-p', '--pass', 'pass_dir', required=True,
              type=click.Path(exists=True, file_okay=False),
              help='Path to the pass directory')
@click.option('-c', '--certificate', 'certificate_path', required=True, envvar='WALLET_P12_PATH',
              type=click.Path(dir_okay=False),
              help='Path to the PKCS#12 certificate')
@click.option('-w', '--password', required=True, envvar='WALLET_P12_PASSWORD',
              help='Certificate password')
@click.option('-i', '--intermediate', 'intermediate_path', required=True, envvar='WALLET_WWDR_PATH',
              type=click.Path(dir_okay=False),
              help='Path to the WWDR intermediate certificate')
@click.option('-o', '--output', 'output_path', default=None, type=click.Path(dir_okay=False),
              help='File location for the output (default: <pass name>.pkpass)')
@click.option('-f', '--force', is_flag=True,
              help='Ignore an existing manifest.json and signature in the pass directory')
def sign(pass_dir, certificate_path, password, intermediate_path, output_path, force):
    """Sign a pass directory into a .pkpass archive."""
    try:
        path = sign_directory(
            pass_dir, output_path, certificate_path, password, intermediate_path, force=force
        )
    except PassError as e:
        click.echo(f'Error signing pass: {e.message}', err=True)
        sys.exit(1)

    click.echo(f'Signed pass written to {path}')


@wallet.command()
@click.argument('pkpass', type=click.Path(exists=True, dir_okay=False))
def verify(pkpass):
    """Check the manifest hashes and the signature of a .pkpass."""
    try:
        signer = verify_archive(pkpass)
    except PassError as e:
        click.echo(f'Verification failed: {e.message}', err=True)
        sys.exit(1)

    click.echo(f'{pkpass}: OK')
    click.echo(f'  Signed by: {signer.subject.rfc4514_string()}')


def main():
    wallet(prog_name='wallet-pass')


if __name__ == '__main__':
    main()
