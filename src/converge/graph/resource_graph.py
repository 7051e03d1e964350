"""Build the directed resource graph from declarations."""

import networkx as nx
from typing import Any, Dict, List, Optional, Set
from pydantic import BaseModel, Field
from .references import Reference, extract_references
from ..ingest.models import DeclarationSet
from ..provider.base import KindSchema, DEFAULT_SCHEMA
from ..utils.errors import CyclicDependencyError, MalformedReferenceError
from ..utils.logging import get_logger

logger = get_logger("graph.resource_graph")


def make_address(kind: str, name: str) -> str:
    """Resource identity as a single string: kind.name"""
    return f"{kind}.{name}"


class ResourceNode(BaseModel):
    """A declared resource with its discovered reference edges."""
    name: str = Field(..., description="Logical name")
    kind: str = Field(..., description="Resource kind")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Attribute expressions as declared")
    references: List[Reference] = Field(default_factory=list, description="Reference edges found in attributes")
    depends_on: List[str] = Field(default_factory=list, description="Explicit dependencies")
    dependency_addresses: List[str] = Field(default_factory=list, description="Addresses of all dependencies, sorted")
    
    class Config:
        frozen = True
    
    @property
    def address(self) -> str:
        return make_address(self.kind, self.name)
    
    @property
    def dependencies(self) -> List[str]:
        """Logical names this node depends on, sorted."""
        return sorted({ref.target for ref in self.references} | set(self.depends_on))


class ResourceGraph:
    """Directed dependency graph: nodes=resources, edges=dependent -> dependency."""
    
    def __init__(self):
        self.graph = nx.DiGraph()
        self._nodes: Dict[str, ResourceNode] = {}
    
    def add_node(self, node: ResourceNode) -> None:
        """Add a node and its outgoing edges; targets are added as bare nodes if unseen."""
        self._nodes[node.name] = node
        self.graph.add_node(node.name)
        for target in node.dependencies:
            self.graph.add_edge(node.name, target)
            logger.debug(f"Added dependency edge: {node.name} -> {target}")
    
    def __len__(self) -> int:
        return len(self._nodes)
    
    def __contains__(self, name: str) -> bool:
        return name in self._nodes
    
    def get_node(self, name: str) -> Optional[ResourceNode]:
        """Get node by logical name."""
        return self._nodes.get(name)
    
    def get_all_nodes(self) -> List[ResourceNode]:
        """All nodes in name order."""
        return [self._nodes[name] for name in sorted(self._nodes)]
    
    def get_dependencies(self, name: str) -> List[str]:
        """Direct dependencies of name."""
        if name not in self.graph:
            return []
        return sorted(self.graph.successors(name))
    
    def get_dependents(self, name: str) -> List[str]:
        """Resources that reference name directly."""
        if name not in self.graph:
            return []
        return sorted(self.graph.predecessors(name))
    
    def get_downstream_resources(self, name: str) -> Set[str]:
        """All resources that depend on name, transitively."""
        if name not in self.graph:
            return set()
        return set(nx.ancestors(self.graph, name))
    
    def get_upstream_resources(self, name: str) -> Set[str]:
        """All resources name depends on, transitively."""
        if name not in self.graph:
            return set()
        return set(nx.descendants(self.graph, name))
    
    def find_cycle(self) -> Optional[List[str]]:
        """Return one cycle as a closed path of names, or None."""
        try:
            edges = nx.find_cycle(self.graph)
        except nx.NetworkXNoCycle:
            return None
        path = [u for u, _ in edges]
        path.append(edges[0][0])
        return path
    
    def creation_order(self) -> List[str]:
        """Dependencies first; ties broken by name."""
        return list(nx.lexicographical_topological_sort(self.graph.reverse(copy=False)))
    
    def destruction_order(self) -> List[str]:
        """Dependents first; ties broken by name."""
        return list(nx.lexicographical_topological_sort(self.graph))
    
    def to_dot(self) -> str:
        """Render the graph in Graphviz DOT format."""
        lines = ["digraph converge {", "  rankdir=LR;"]
        for node in self.get_all_nodes():
            lines.append(f'  "{node.name}" [label="{node.address}"];')
        for source, target in sorted(self.graph.edges()):
            lines.append(f'  "{source}" -> "{target}";')
        lines.append("}")
        return "\n".join(lines)


def build_graph(
    declarations: DeclarationSet,
    schemas: Optional[Dict[str, KindSchema]] = None,
) -> ResourceGraph:
    """
    Build and validate the resource graph.
    
    Args:
        declarations: Declared resources
        schemas: Kind schemas used to check referenced output fields
        
    Returns:
        Acyclic ResourceGraph
        
    Raises:
        MalformedReferenceError: Unknown resource or output field in a reference
        CyclicDependencyError: References form a cycle
    """
    schemas = schemas or {}
    specs = declarations.resources
    names = set(specs)
    graph = ResourceGraph()
    
    for name in sorted(specs):
        spec = specs[name]
        references = [
            ref.model_copy(update={"target_address": make_address(specs[ref.target].kind, ref.target)})
            for ref in extract_references(name, spec.attributes, names)
        ]
        
        for ref in references:
            target_spec = specs[ref.target]
            outputs = schemas.get(target_spec.kind, DEFAULT_SCHEMA).outputs
            if ref.field not in target_spec.attributes and ref.field not in outputs:
                message = (
                    f"{name}.{ref.attribute}: '{ref.expression}' refers to unknown field "
                    f"'{ref.field}' of {make_address(target_spec.kind, ref.target)}"
                )
                if not ref.expression.startswith("${"):
                    message += (
                        f"; a plain string starting with '{ref.target}.' is read as a reference "
                        f"because '{ref.target}' is declared. Write '${{{ref.target}.<field>}}' "
                        f"for a reference, or choose a literal that does not start with '{ref.target}.'"
                    )
                raise MalformedReferenceError(
                    message,
                    resource=name,
                    expression=ref.expression,
                )
        
        for dep in spec.depends_on:
            if dep not in names:
                raise MalformedReferenceError(
                    f"{name}: depends_on names undeclared resource '{dep}'",
                    resource=name,
                    expression=dep,
                )
        
        graph.add_node(ResourceNode(
            name=name,
            kind=spec.kind,
            attributes=spec.attributes,
            references=references,
            depends_on=sorted(set(spec.depends_on)),
            dependency_addresses=sorted(
                {ref.target_address for ref in references}
                | {make_address(specs[dep].kind, dep) for dep in spec.depends_on}
            ),
        ))
    
    cycle = graph.find_cycle()
    if cycle:
        raise CyclicDependencyError(cycle)
    
    logger.info(
        f"Built resource graph with {graph.graph.number_of_nodes()} nodes "
        f"and {graph.graph.number_of_edges()} edges"
    )
    return graph
