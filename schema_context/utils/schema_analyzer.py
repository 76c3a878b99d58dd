"""
Schema analysis and relationship detection utilities
"""

import networkx as nx
from typing import Dict, List, Any, Tuple, Iterator, Optional
from ..database.unified import Cardinality, UnifiedRelation, UnifiedSchema, UnifiedTable


class SchemaAnalyzer:
    """Analyze a unified schema and detect relationships"""

    def __init__(self):
        # Edge A -> B means rows of A reference rows of B
        self.relationship_graph = nx.DiGraph()

    def analyze_schema(self, schema: UnifiedSchema) -> Dict[str, Any]:
        """Analyze schema and return insights"""
        self._build_relationship_graph(schema)

        return {
            'implicit_relationships': self._detect_implicit_relationships(schema),
            'dependencies': self._analyze_table_dependencies(),
            'circular_references': self._find_circular_references(),
            'insertion_order': self._get_optimal_insertion_order(),
            'deletion_order': self._get_optimal_deletion_order()
        }

    def _dependency_edges(self, schema: UnifiedSchema) -> Iterator[Tuple[str, str, UnifiedRelation]]:
        """Yield (dependent table, referenced table, relation) pairs"""
        for table in schema.tables:
            for rel in table.relations:
                if rel.cardinality == Cardinality.MANY_TO_ONE:
                    yield rel.from_table, rel.to_table, rel
                elif rel.cardinality == Cardinality.ONE_TO_MANY:
                    yield rel.to_table, rel.from_table, rel
                elif rel.cardinality == Cardinality.ONE_TO_ONE:
                    column = table.get_column(rel.from_column)
                    # a column typed as the target model is a navigation field, not a key
                    if column is not None and column.type.rstrip('[]?') != rel.to_table:
                        yield rel.from_table, rel.to_table, rel

    def _build_relationship_graph(self, schema: UnifiedSchema):
        """Build a graph of table relationships"""
        self.relationship_graph.clear()

        for table in schema.tables:
            self.relationship_graph.add_node(table.name)

        for dependent, referenced, rel in self._dependency_edges(schema):
            self.relationship_graph.add_edge(
                dependent,
                referenced,
                from_column=rel.from_column,
                to_column=rel.to_column,
                cardinality=rel.cardinality.value
            )

    @staticmethod
    def _target_for_column(column_name: str, tables: Dict[str, UnifiedTable]) -> Optional[UnifiedTable]:
        name = column_name.lower()
        for table_name, table in tables.items():
            plural = table_name.lower()
            candidates = {plural}
            if plural.endswith('ies'):
                candidates.add(plural[:-3] + 'y')
            elif plural.endswith('s'):
                candidates.add(plural[:-1])
            for candidate in candidates:
                if name in (f"{candidate}_id", f"{candidate}id"):
                    return table
        return None

    def _detect_implicit_relationships(self, schema: UnifiedSchema) -> List[Dict[str, Any]]:
        """Detect implicit relationships based on naming conventions"""
        implicit_rels = []
        tables = {table.name: table for table in schema.tables}

        for table in schema.tables:
            for column in table.columns:
                if column.is_foreign_key:
                    continue

                target = self._target_for_column(column.name, tables)
                if target is None or target.name == table.name:
                    continue

                implicit_rels.append({
                    'from_table': table.name,
                    'from_column': column.name,
                    'to_table': target.name,
                    'to_column': target.primary_key[0] if target.primary_key else 'id',
                    'type': 'implicit_foreign_key',
                    'confidence': 0.8
                })

        return implicit_rels

    def _analyze_table_dependencies(self) -> Dict[str, List[str]]:
        """Analyze which tables depend on which other tables"""
        return {
            table_name: sorted(target for target in self.relationship_graph.successors(table_name)
                               if target != table_name)
            for table_name in self.relationship_graph.nodes
        }

    def _find_circular_references(self) -> List[List[str]]:
        """Find circular references in the schema"""
        return [cycle for cycle in nx.simple_cycles(self.relationship_graph)]

    def _acyclic_view(self) -> nx.DiGraph:
        graph = self.relationship_graph.copy()
        graph.remove_edges_from(list(nx.selfloop_edges(graph)))
        return graph

    def _get_optimal_insertion_order(self) -> List[str]:
        """Get optimal order for inserting data to avoid constraint violations"""
        try:
            # Referenced tables come first
            return list(reversed(list(nx.topological_sort(self._acyclic_view()))))
        except nx.NetworkXUnfeasible:
            return self._get_dependency_based_order()

    def _get_optimal_deletion_order(self) -> List[str]:
        """Get optimal order for deleting data to avoid constraint violations"""
        try:
            return list(nx.topological_sort(self._acyclic_view()))
        except nx.NetworkXUnfeasible:
            return list(reversed(self._get_dependency_based_order()))

    def _get_dependency_based_order(self) -> List[str]:
        """Get table order based on dependency analysis"""
        dependencies = self._analyze_table_dependencies()

        # Fewer dependencies first
        return sorted(dependencies.keys(), key=lambda x: len(dependencies[x]))

    def get_required_tables_for_insert(self, target_table: str) -> List[str]:
        """Get tables that must be populated before inserting into target table"""
        if target_table not in self.relationship_graph:
            return []
        required = nx.descendants(self.relationship_graph, target_table)
        required.discard(target_table)
        return sorted(required)

    def validate_insert_order(self, tables: List[str]) -> Tuple[bool, List[str]]:
        """Validate if the proposed insert order is valid"""
        if not tables:
            return True, []

        errors = []
        inserted_tables = set()

        for table in tables:
            required = self.get_required_tables_for_insert(table)
            missing = [req for req in required if req not in inserted_tables]

            if missing:
                errors.append(f"Table '{table}' requires tables {missing} to be inserted first")

            inserted_tables.add(table)

        return len(errors) == 0, errors

    def summarize(self, schema: UnifiedSchema) -> Dict[str, Any]:
        """Overview of tables, keys and relations"""
        return {
            'database_type': schema.database_type,
            'schema_name': schema.schema_name,
            'source': schema.source,
            'table_count': len(schema.tables),
            'column_count': sum(len(table.columns) for table in schema.tables),
            'relation_count': len(schema.relations),
            'tables': [
                {
                    'name': table.name,
                    'columns': len(table.columns),
                    'primary_key': list(table.primary_key),
                }
                for table in schema.tables
            ],
            'relations': [
                f"{rel.from_table}.{rel.from_column} -> {rel.to_table}.{rel.to_column} ({rel.cardinality.value})"
                for rel in schema.relations
            ]
        }
