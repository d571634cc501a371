# filename : scripts.py
# created  : 10/17/2026


import logging

import click

from daplug.core.errors import DaplugError
from daplug.core.smartcard.logging import PROTOCOL, TRACE

lg = logging.getLogger(__name__)

GP_DEFAULT_KEY = "404142434445464748494A4B4C4D4E4F"


def _hex(data: bytes) -> str:
    return data.hex().upper()


def _parse_hex(value, name: str, length: int | None = None) -> bytes | None:
    if value is None:
        return None
    try:
        data = bytes.fromhex(value.replace(":", "").replace(" ", ""))
    except ValueError:
        raise click.BadParameter(f"not a hex string: {value!r}", param_hint=name)
    if length is not None and len(data) != length:
        raise click.BadParameter(f"expected {length} bytes, got {len(data)}", param_hint=name)
    return data


def _parse_level(value: str) -> int:
    """Parse a security level given as hex (``33``) or names (``C_MAC,R_MAC``)."""
    from daplug.core.scp.security import LEVEL_NAMES

    names = [n.strip().upper() for n in value.replace("|", ",").split(",") if n.strip()]
    if names and all(n in LEVEL_NAMES for n in names):
        level = 0
        for n in names:
            level |= LEVEL_NAMES[n]
        return level
    try:
        return int(value, 16)
    except ValueError:
        raise click.BadParameter(f"invalid security level: {value!r}", param_hint="'--level'")


def _keyset_from_options(version, key, mac_key, dek_key):
    from daplug.core.scp.keyset import Keyset

    return Keyset(
        version=version,
        enc=_parse_hex(key, "'--key'", 16),
        mac=_parse_hex(mac_key, "'--mac-key'", 16),
        dek=_parse_hex(dek_key, "'--dek-key'", 16),
    )


def _key_options(func):
    func = click.option("--dek-key", default=None, help="DEK key (hex, defaults to --key).")(func)
    func = click.option("--mac-key", default=None, help="MAC key (hex, defaults to --key).")(func)
    func = click.option("-k", "--key", default=GP_DEFAULT_KEY, show_default=True,
                        help="ENC key (hex).")(func)
    return func


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="TRACE level (show raw APDUs).")
def daplug(verbose):
    """Host-side tools for the Daplug secure channel."""
    logging.basicConfig(
        level=TRACE if verbose else PROTOCOL,
        format="%(levelname)-8s %(name)s: %(message)s",
    )


@daplug.command()
@click.argument("key")
def kcv(key):
    """Print the key check value of a 16-byte KEY."""
    from daplug.core.scp.crypto import kcv as compute_kcv

    click.echo(_hex(compute_kcv(_parse_hex(key, "'KEY'", 16))))


@daplug.command()
@_key_options
@click.option("-d", "--diversifier", required=True, help="16-byte diversifier (hex).")
def diversify(key, mac_key, dek_key, diversifier):
    """Print the keys diversified by DIVERSIFIER."""
    from daplug.core.scp.keyset import diversify_keyset

    keyset = _keyset_from_options(0, key, mac_key, dek_key)
    div = diversify_keyset(keyset, _parse_hex(diversifier, "'--diversifier'", 16))
    for name, value, check in zip(("ENC", "MAC", "DEK"), (div.enc, div.mac, div.dek), div.kcvs()):
        click.echo(f"{name}: {_hex(value)}  KCV {_hex(check)}")


@daplug.command()
@click.option("--keys", required=True, help="Static keys as ENC[:MAC[:DEK]] (hex).")
@click.option("--host-challenge", required=True, help="8-byte host challenge (hex).")
@click.option("--init-response", required=True,
              help="INITIALIZE UPDATE response data, without SW (hex).")
@click.option("-l", "--level", default="01", show_default=True,
              help="Security level, hex or names (C_MAC,C_DEC,R_MAC,R_ENC).")
def derive(keys, host_challenge, init_response, level):
    """Show session derivation steps for a recorded handshake."""
    from daplug.core.scp import crypto
    from daplug.core.scp.channel import SecureChannel
    from daplug.core.scp.protocol import external_authenticate, parse_initialize_update
    from daplug.core.scp.security import C_MAC, format_level

    parts = keys.split(":")
    if len(parts) > 3:
        raise click.BadParameter("expected ENC[:MAC[:DEK]]", param_hint="'--keys'")
    parts += [None] * (3 - len(parts))
    keyset = _keyset_from_options(0, *parts)
    host = _parse_hex(host_challenge, "'--host-challenge'", 8)
    sec_level = _parse_level(level) | C_MAC

    try:
        init = parse_initialize_update(_parse_hex(init_response, "'--init-response'"))
    except DaplugError as exc:
        raise click.ClickException(str(exc))

    click.echo("--- INITIALIZE UPDATE response ---")
    click.echo(f"  Key diversification data: {_hex(init.key_diversification_data)}")
    click.echo(f"  Key information:          {_hex(init.key_info)}")
    click.echo(f"  Sequence counter:         {_hex(init.counter)}")
    click.echo(f"  Card challenge:           {_hex(init.card_challenge)}")
    click.echo(f"  Card cryptogram:          {_hex(init.card_cryptogram)}")

    session_keys = crypto.derive_session_keys(keyset, init.counter)
    click.echo("--- Session keys ---")
    for name in ("s_enc", "r_enc", "c_mac", "r_mac", "dek"):
        click.echo(f"  {name.upper():6s} {_hex(getattr(session_keys, name))}")

    expected = crypto.card_cryptogram(host, init.card_challenge, init.counter, session_keys.s_enc)
    status = "OK" if expected == init.card_cryptogram else "MISMATCH"
    click.echo("--- Cryptograms ---")
    click.echo(f"  Card cryptogram (computed): {_hex(expected)}  {status}")
    cryptogram = crypto.host_cryptogram(host, init.card_challenge, init.counter, session_keys.s_enc)
    click.echo(f"  Host cryptogram:            {_hex(cryptogram)}")

    channel = SecureChannel(session_keys, sec_level)
    apdu = channel.wrap(external_authenticate(sec_level, cryptogram))
    click.echo(f"--- EXTERNAL AUTHENTICATE ({format_level(sec_level)}) ---")
    click.echo(f"  {_hex(apdu.to_bytes())}")


@daplug.command()
@_key_options
@click.option("-r", "--reader", default=None, help="PC/SC reader name (substring).")
@click.option("--keyset-version", default="01", show_default=True, help="Keyset version (hex).")
@click.option("-l", "--level", default="01", show_default=True,
              help="Security level, hex or names (C_MAC,C_DEC,R_MAC,R_ENC).")
@click.option("-d", "--diversifier", default=None,
              help="16-byte diversifier; --key must then be the diversified keys.")
@click.argument("apdus", nargs=-1, required=True)
def apdu(key, mac_key, dek_key, reader, keyset_version, level, diversifier, apdus):
    """Authenticate and exchange APDUS (hex) through the secure channel."""
    from daplug.core.scp.session import Session
    from daplug.core.smartcard.card import Card
    from daplug.core.smartcard.types import APDU

    try:
        version = int(keyset_version, 16)
    except ValueError:
        raise click.BadParameter(f"not hex: {keyset_version!r}", param_hint="'--keyset-version'")
    keyset = _keyset_from_options(version, key, mac_key, dek_key)
    div = _parse_hex(diversifier, "'--diversifier'", 16)
    sec_level = _parse_level(level)

    try:
        commands = [APDU.from_hex(a) for a in apdus]
    except DaplugError as exc:
        raise click.BadParameter(str(exc), param_hint="'APDUS'")

    card = Card()
    try:
        card.connect(reader)
        session = Session(card)
        session.authenticate(keyset, sec_level, diversifier=div)
        try:
            for command in commands:
                response = session.exchange(command)
                click.echo(f"=> {command!r}")
                click.echo(f"<= {response!r}")
        finally:
            session.deauthenticate()
    except DaplugError as exc:
        raise click.ClickException(str(exc))
    finally:
        card.close()
