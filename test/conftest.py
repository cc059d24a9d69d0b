"""
Test configuration for the Bella interpreter tests
"""

import pytest
import sys
from pathlib import Path

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from parsing import create_parser
from semantics import create_analyzer
from interpreter import interpret


def unwrap_value(val):
  """Recursively unwrap value dicts to plain Python values for assertions"""
  if isinstance(val, dict) and 'type' in val and 'value' in val:
    if val['type'] == "Array":
      return [unwrap_value(elem) for elem in val['value']]
    return val['value']
  elif isinstance(val, (list, tuple)):
    return [unwrap_value(elem) for elem in val]
  return val


@pytest.fixture
def parser():
  return create_parser()


@pytest.fixture
def analyzer():
  return create_analyzer()


@pytest.fixture
def run_bella(parser, analyzer):
  """Run Bella source text and return what it printed as plain Python values"""
  def run(source: str):
    program = analyzer.analyze(parser.parse_string(source))
    return unwrap_value(interpret(program))
  return run


@pytest.fixture
def examples_dir():
  return project_root / "examples"
