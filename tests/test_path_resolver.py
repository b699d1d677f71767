from capm_studio import path_resolver
from capm_studio.models import FileSystemNode, NodeKind


def test_normalize_prefixes_root_and_resolves_segments():
    assert path_resolver.normalize("db/schema.cds") == "/db/schema.cds"
    assert path_resolver.normalize("/srv//service.cds/") == "/srv/service.cds"
    assert path_resolver.normalize("/app/./webapp/../manifest.json") == "/app/manifest.json"
    assert path_resolver.normalize("") == "/"
    assert path_resolver.normalize("/..") == "/"


def test_parent_and_name():
    assert path_resolver.parent_of("/db/schema.cds") == "/db"
    assert path_resolver.parent_of("/package.json") == "/"
    assert path_resolver.name_of("/app/webapp/Component.js") == "Component.js"
    assert path_resolver.name_of("/") == ""


def test_split_file_path_names_untitled_when_missing():
    assert path_resolver.split_file_path("/srv/handlers.js") == ("/srv", "handlers.js")
    assert path_resolver.split_file_path("/") == ("/", "untitled")


def test_ancestors_and_chain():
    assert path_resolver.ancestors("/app/webapp/view/Main.view.xml") == ["/app", "/app/webapp", "/app/webapp/view"]
    assert path_resolver.ancestors("/README.md") == []
    assert path_resolver.chain("/app/webapp") == ["/app", "/app/webapp"]
    assert path_resolver.chain("/") == []


def test_join():
    assert path_resolver.join("/", "db") == "/db"
    assert path_resolver.join("/db", "schema.cds") == "/db/schema.cds"


def test_is_within():
    assert path_resolver.is_within("/db/schema.cds", "/db")
    assert path_resolver.is_within("/db", "/db")
    assert not path_resolver.is_within("/dbx/file", "/db")
    assert path_resolver.is_within("/anything", "/")


def test_find_node_depth_first_with_kind_filter():
    db = FileSystemNode.folder("/db", "db")
    schema = FileSystemNode.file("/db/schema.cds", "schema.cds", "namespace x;")
    db.children.append(schema)
    nodes = [db, FileSystemNode.file("/package.json", "package.json", "{}")]

    assert path_resolver.find_node(nodes, "/db/schema.cds") is schema
    assert path_resolver.find_file(nodes, "/db/schema.cds") is schema
    assert path_resolver.find_folder(nodes, "/db/schema.cds") is None
    assert path_resolver.find_node(nodes, "/db", NodeKind.FOLDER) is db
    assert path_resolver.find_node(nodes, "/missing") is None


def test_resolve_cli_path():
    for argument in (".", "./", "~", "/home/project", ""):
        assert path_resolver.resolve_cli_path(argument) == "/"
    assert path_resolver.resolve_cli_path("db") == "/db"
    assert path_resolver.resolve_cli_path("./srv/") == "/srv"
