"""
Project Templates

Starter CAPM project structures used when a workspace project is created.
"""

import re
from typing import Dict, List

from .models import FileSystemNode

DEFAULT_TEMPLATE = "basic"
DEFAULT_ACTIVE_FILE = "/db/schema.cds"

STARTUP_OUTPUT = [
    "🚀 Starting CAPM application...",
    "📦 Installing dependencies...",
    "✅ Application started on http://localhost:4004",
]


def namespace_for(project_name: str) -> str:
    return re.sub(r"[^a-z0-9]", ".", project_name.lower())


def package_name_for(project_name: str) -> str:
    return re.sub(r"[^a-z0-9]", "-", project_name.lower())


def _basic_sources(namespace: str) -> Dict[str, str]:
    return {
        "schema": f"""namespace {namespace};

entity SalesOrder {{
  key ID: UUID;
  orderNumber: String(20) @mandatory;
  customer: Association to Customer;
  amount: Decimal(10,2);
  createdAt: DateTime @cds.on.insert: $now;
  modifiedAt: DateTime @cds.on.insert: $now @cds.on.update: $now;
}}

entity Customer {{
  key ID: UUID;
  name: String(100) @mandatory;
  email: String(100);
  orders: Composition of many SalesOrder on orders.customer = $self;
}}""",
        "service": f"""using {namespace} as db from '../db/schema';

service SalesOrderService {{
  entity SalesOrders as projection on db.SalesOrder;
  entity Customers as projection on db.Customer;

  action createBulkOrders(orders: array of SalesOrders) returns array of SalesOrders;
}}""",
        "handlers": """const cds = require('@sap/cds');

module.exports = cds.service.impl(async function() {
  const { SalesOrders, Customers } = this.entities;

  this.before('CREATE', 'SalesOrders', async (req) => {
    const { orderNumber } = req.data;
    if (!orderNumber) {
      req.error(400, 'Order number is required');
    }
  });

  this.on('createBulkOrders', async (req) => {
    const { orders } = req.data;
    const results = [];

    for (const order of orders) {
      const result = await INSERT.into(SalesOrders).entries(order);
      results.push(result);
    }

    return results;
  });
});""",
    }


def _empty_sources(namespace: str) -> Dict[str, str]:
    return {
        "schema": f"namespace {namespace};\n\n// Define your entities here\n",
        "service": f"using {namespace} as db from '../db/schema';\n\nservice MainService {{\n  // Define your service here\n}}",
        "handlers": "const cds = require('@sap/cds');\n\nmodule.exports = cds.service.impl(async function() {\n  // Add your service handlers here\n});",
    }


TEMPLATES = {
    "basic": _basic_sources,
    "empty": _empty_sources,
}


def package_json(project_name: str) -> str:
    return f"""{{
  "name": "{package_name_for(project_name)}",
  "version": "1.0.0",
  "description": "SAP CAPM Application",
  "main": "server.js",
  "scripts": {{
    "start": "cds run",
    "watch": "cds watch",
    "build": "cds build",
    "deploy": "cds deploy",
    "build:ui": "ui5 build",
    "serve:ui": "ui5 serve"
  }},
  "dependencies": {{
    "@sap/cds": "^7.4.0",
    "@sap/cds-dk": "^7.4.0",
    "express": "^4.18.0",
    "pg": "^8.8.0"
  }},
  "devDependencies": {{
    "@ui5/cli": "^3.0.0"
  }},
  "cds": {{
    "requires": {{
      "db": {{
        "kind": "postgres"
      }}
    }}
  }}
}}"""


def readme(project_name: str) -> str:
    return f"""# {project_name}

A SAP CAPM (Cloud Application Programming Model) application.

## Getting Started

1. Install dependencies: `npm install`
2. Start the application: `npm start`
3. Open your browser and navigate to http://localhost:4004

## Project Structure

- `db/` - Database schema and data models
- `srv/` - Service definitions and handlers
- `package.json` - Project configuration and dependencies
"""


def generate_project_structure(project_name: str, template: str = DEFAULT_TEMPLATE) -> List[FileSystemNode]:
    """Build the starter tree for ``project_name``. Unknown templates fall back to ``basic``."""
    sources = TEMPLATES.get(template, TEMPLATES[DEFAULT_TEMPLATE])(namespace_for(project_name))

    db = FileSystemNode.folder("/db", "db")
    db.children.append(FileSystemNode.file("/db/schema.cds", "schema.cds", sources["schema"]))

    srv = FileSystemNode.folder("/srv", "srv")
    srv.children.append(FileSystemNode.file("/srv/service.cds", "service.cds", sources["service"]))
    srv.children.append(FileSystemNode.file("/srv/handlers.js", "handlers.js", sources["handlers"]))

    return [
        db,
        srv,
        FileSystemNode.file("/package.json", "package.json", package_json(project_name)),
        FileSystemNode.file("/README.md", "README.md", readme(project_name)),
    ]


def welcome_message(project_name: str) -> str:
    return f"""Welcome to your new CAPM project "{project_name}"! 🎉

I've created a basic SAP CAPM project structure for you:

📁 **Database Layer** (/db/schema.cds)
- Entity definitions and data models

📁 **Service Layer** (/srv/)
- service.cds: OData service definitions
- handlers.js: Business logic and event handlers

📁 **Configuration**
- package.json: Dependencies and scripts
- README.md: Project documentation

**Quick Start Examples:**
- "Create a complete book management system with Fiori Elements UI"
- "Add a customer entity with orders relationship"
- "Generate a ListReport app for sales orders"

Just describe what you want to build and I'll generate complete, working code! 🚀"""
