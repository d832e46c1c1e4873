"""Doc commands: write and print task document sections."""

import click

from taskflow.cli.helpers import handle_errors, is_quiet, load_context

from ....core.lifecycle import set_doc_section, show_doc


@click.group()
def doc():
    """Read and write task documents"""
    pass


@doc.command('set')
@click.argument('task_id')
@click.option('--section', required=True, help='Section to replace, e.g. "Summary"')
@click.option('--text', help='Section text (markdown)')
@click.option('--file', 'doc_file', type=click.File('r'), help='Read the text from a file ("-" for stdin)')
@click.option('--updated-by', help='Author of the doc change')
@handle_errors
def set_cmd(task_id, section, text, doc_file, updated_by):
    """Replace one section of a task document"""
    if (text is None) == (doc_file is None):
        raise click.UsageError("Provide exactly one of --text or --file")
    if doc_file is not None:
        text = doc_file.read()
    ctx = load_context()
    set_doc_section(ctx, task_id, section, text, updated_by=updated_by)
    click.echo(ctx.store.readme_path(task_id.strip()))


@doc.command()
@click.argument('task_id')
@click.option('--section', help='Print only this section')
@handle_errors
def show(task_id, section):
    """Print a task document"""
    text = show_doc(load_context(), task_id, section=section)
    if text:
        click.echo(text)
    elif not is_quiet():
        click.echo(f"section has no content: {section}" if section else "task doc is empty")
