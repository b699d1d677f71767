import json

from capm_studio.templates import (
    generate_project_structure,
    namespace_for,
    package_json,
    package_name_for,
    welcome_message,
)


def test_names():
    assert namespace_for("My Sales-App") == "my.sales.app"
    assert package_name_for("My Sales-App") == "my-sales-app"


def test_package_json_is_valid_json():
    data = json.loads(package_json("Bookshop"))
    assert data["name"] == "bookshop"
    assert data["scripts"]["start"] == "cds run"


def test_unknown_template_falls_back_to_basic():
    basic = generate_project_structure("Shop", "basic")
    fallback = generate_project_structure("Shop", "does-not-exist")
    assert basic[0].children[0].content == fallback[0].children[0].content
    assert "entity SalesOrder" in basic[0].children[0].content


def test_structure_paths_are_consistent():
    nodes = generate_project_structure("Shop")
    srv = nodes[1]
    assert srv.is_folder and srv.is_expanded
    assert [child.path for child in srv.children] == ["/srv/service.cds", "/srv/handlers.js"]


def test_welcome_message_names_project():
    assert '"Shop"' in welcome_message("Shop")
