import json
from pathlib import Path
from typing import Annotated

import typer
import yaml
from dotenv import find_dotenv, load_dotenv

load_dotenv(find_dotenv())

app = typer.Typer(
    help="NodeSet operator: data plane node set reconciliation for Kubernetes",
    add_completion=False,
)


def _load_nodeset(path: Path):
    from nodeset_operator.models.nodeset import NodeSet

    try:
        document = yaml.safe_load(path.read_text())
    except (OSError, yaml.YAMLError) as e:
        typer.echo(f"Could not read {path}: {e}", err=True)
        raise typer.Exit(code=1)

    if not isinstance(document, dict):
        typer.echo(f"{path} does not contain a NodeSet manifest", err=True)
        raise typer.Exit(code=1)

    document.setdefault("metadata", {}).setdefault("name", path.stem)
    return NodeSet.model_validate(document)


@app.command("operator")
def run_operator():
    """Run the Kubernetes operator (connects to cluster)."""
    from nodeset_operator.main import main

    main()


@app.command("config-hash")
def config_hash_command(
    manifest: Annotated[Path, typer.Argument(help="NodeSet manifest (YAML)")],
):
    """Print the drift hash of a NodeSet manifest."""
    from nodeset_operator.confighash import config_hash

    nodeset = _load_nodeset(manifest)
    typer.echo(config_hash(nodeset.spec))


@app.command("references")
def references_command(
    manifest: Annotated[Path, typer.Argument(help="NodeSet manifest (YAML)")],
    as_json: Annotated[bool, typer.Option("--json", help="Print JSON")] = False,
):
    """Print the ConfigMaps and Secrets a NodeSet depends on."""
    from nodeset_operator.correlator import config_map_references, secret_references

    nodeset = _load_nodeset(manifest)
    refs = {
        "configMaps": config_map_references(nodeset.spec),
        "secrets": secret_references(nodeset.spec),
    }
    if as_json:
        typer.echo(json.dumps(refs, indent=2))
        return

    for kind, names in refs.items():
        typer.echo(f"{kind}:")
        for name in names:
            typer.echo(f"  {name}")


@app.command("image-defaults")
def image_defaults_command():
    """Print the container images resolved from the environment."""
    from nodeset_operator.config import ImageDefaults

    images = ImageDefaults.from_env().ansible_vars()
    typer.echo(yaml.safe_dump(images, sort_keys=True), nl=False)


if __name__ == "__main__":
    app()
