from eth_abi import encode
from eth_hash.auto import keccak

from klaytx.utils import bytes_to_hex


def get_function_entry(abi_json, function_name: str) -> dict:
  """
  Finds the ABI entry of a contract function.

  Args:
      abi_json (list): The ABI (Application Binary Interface) in JSON format, a list
                       of dictionaries each describing a function, event or constructor.
      function_name (str): The name of the function.

  Returns:
      dict: The function's ABI entry.

  Raises:
      StopIteration: If the ABI has no function with that name.
  """
  return next(filter(lambda item: item.get('type') == 'function' and item.get('name') == function_name, abi_json))


def get_function_signature(abi_json, function_name: str) -> str:
  """
  Builds the canonical signature of a contract function from its ABI,
  e.g. "transfer(address,uint256)".
  """
  entry = get_function_entry(abi_json, function_name)
  return f"{function_name}({','.join(flatten_type_def(x) for x in entry['inputs'])})"


def flatten_type_def(item) -> str:
  """
  Recursively flattens an ABI parameter into its canonical type string.

  Args:
      item (dict): An ABI parameter (input, output or struct component).

  Returns:
      str: The type string. Structs become a parenthesized list of their components,
           keeping any array suffix: `(uint256,string)[]`.
  """
  if 'components' in item:
      # 'tuple', 'tuple[]', 'tuple[2]': keep whatever follows 'tuple'.
      suffix = item['type'][len('tuple'):]
      return '(' + ','.join(flatten_type_def(x) for x in item['components']) + ')' + suffix

  return item['type']


def get_function_selector(function_signature: str) -> bytes:
  """
  Calculates the function selector for a given function signature: the first four
  bytes of the Keccak-256 hash of the canonical signature.

  Args:
      function_signature (str): The canonical signature (e.g. "transfer(address,uint256)").

  Returns:
      bytes: The 4-byte function selector.
  """
  return keccak(function_signature.encode())[:4]


def encode_function_call(function_signature: str, arg_types: list[str], args: list) -> str:
  """
  Builds the call data of a smart contract execution: selector followed by the
  ABI-encoded arguments.

  Args:
      function_signature (str): The canonical signature of the function.
      arg_types (list[str]): The ABI types of the arguments, in order.
      args (list): The argument values.

  Returns:
      str: The '0x'-prefixed call data, ready to be used as a transaction's `input`.
  """
  return bytes_to_hex(get_function_selector(function_signature) + encode(arg_types, args))


def encode_function_call_from_abi(abi_json, function_name: str, *params) -> str:
  """
  Same as `encode_function_call`, reading the signature and argument types from an ABI.
  """
  arg_types = [flatten_type_def(x) for x in get_function_entry(abi_json, function_name)['inputs']]
  return encode_function_call(f"{function_name}({','.join(arg_types)})", arg_types, list(params))
