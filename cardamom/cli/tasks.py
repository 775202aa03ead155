import click

from ..card import Card
from .utils import cli_logger


def create_card(repository, raw):
    card = Card.new(raw)
    repository.create(card)
    cli_logger.info(f'Card "{card.id}" created.')
    click.echo(f"{card.id}\t{card.etag or ''}")
    return card


def read_card(repository, id):
    card = repository.read(id)
    click.echo(card.raw, nl=False)
    return card


def update_card(repository, id, raw):
    # The current etag makes sure nobody changed the card in the meantime.
    card = repository.read(id)
    card.raw = raw
    repository.update(card)
    cli_logger.info(f'Card "{card.id}" updated.')
    click.echo(card.etag or "")
    return card


def delete_card(repository, id):
    card = repository.read(id)
    repository.delete(card)
    cli_logger.info(f'Card "{card.id}" deleted.')


def list_cards(repository):
    cards = repository.read_all()
    for card in cards:
        click.echo(f"{card.id}\t{card.date.isoformat()}\t{card.name or ''}")
    return cards
