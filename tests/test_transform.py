import pytest

from secure_pillar import documents
from secure_pillar.gpg import is_encrypted
from secure_pillar.nodes import Mapping, Node, Scalar, Sequence
from secure_pillar.transform import Action, LeafTransformer, TreeWalker
from secure_pillar.utils import CryptoError, LeafError


@pytest.fixture()
def transformer(gpg):
    return LeafTransformer(gpg, recipient='Salt Master')


def test_encrypt(transformer):
    assert is_encrypted(transformer.transform('plaintext123', Action.ENCRYPT))


def test_encrypt_is_idempotent(transformer):
    once = transformer.transform('plaintext123', Action.ENCRYPT)
    assert transformer.transform(once, Action.ENCRYPT) == once


def test_encrypt_decrypt(transformer):
    ciphertext = transformer.transform('plaintext123', Action.ENCRYPT)
    assert transformer.transform(ciphertext, Action.DECRYPT) == 'plaintext123'


def test_encrypt_without_recipient(gpg):
    with pytest.raises(CryptoError):
        LeafTransformer(gpg).transform('plaintext123', Action.ENCRYPT)


def test_decrypt_plaintext(transformer):
    assert transformer.transform('plaintext123', Action.DECRYPT) == 'plaintext123'


def test_decrypt_without_secret_key(transformer, encrypted):
    with pytest.raises(CryptoError):
        transformer.transform(encrypted('Lost Key', 'secret'), Action.DECRYPT)


def test_identify(transformer, gpg, encrypted):
    key_id = gpg.find_key('Salt Master')
    assert transformer.transform(encrypted('Salt Master', 'secret'), Action.IDENTIFY) == \
        f"{key_id}: Salt Master <salt@example.invalid>"


def test_identify_plaintext(transformer):
    assert transformer.transform('plaintext123', Action.IDENTIFY) == ''


def test_identify_unknown_key(gpg, encrypted):
    message = encrypted('Lost Key', 'secret')
    gpg.keys.pop(gpg.find_key('Lost Key'))
    with pytest.raises(CryptoError):
        LeafTransformer(gpg).transform(message, Action.IDENTIFY)


@pytest.fixture()
def tree(example) -> Node:
    return documents.load(example.read_text())


def leaves(node):
    if node is None or node.is_scalar:
        yield node
    elif node.is_sequence:
        for item in node.as_sequence():
            yield from leaves(item)
    else:
        for _, value in node.as_mapping():
            yield from leaves(value)


def test_identify_walk_is_identity(transformer, tree):
    assert TreeWalker(transformer).walk(tree, Action.IDENTIFY) == tree


def test_walk_encrypts_every_string(transformer, tree):
    result = TreeWalker(transformer).walk(tree, Action.ENCRYPT)
    strings = [leaf.value for leaf in leaves(result) if isinstance(leaf.value, str)]
    assert strings and all(is_encrypted(s) for s in strings)
    assert documents.get_path(result, 'other:port') == Scalar(5432)


def test_walk_preserves_shape(transformer, tree):
    result = TreeWalker(transformer).walk(tree, Action.ENCRYPT)
    assert result.as_mapping().keys() == tree.as_mapping().keys()
    assert len(documents.get_path(result, 'secure_vars:db_users')) == 2
    assert len(list(leaves(result))) == len(list(leaves(tree)))


def test_walk_decrypt_inverts_encrypt(transformer, tree):
    walker = TreeWalker(transformer)
    assert walker.walk(walker.walk(tree, Action.ENCRYPT), Action.DECRYPT) == tree


def test_scope_isolation(transformer, tree):
    result = TreeWalker(transformer, scope='secure_vars').walk(tree, Action.ENCRYPT)
    assert result.as_mapping().get('other') == tree.as_mapping().get('other')
    assert all(is_encrypted(leaf.value) for leaf in leaves(result.as_mapping().get('secure_vars')))


def test_scope_missing(transformer, tree):
    assert TreeWalker(transformer, scope='missing').walk(tree, Action.ENCRYPT) == tree


def test_sequence_with_nulls(transformer):
    node = Sequence((Scalar(None), Scalar('a'), Scalar(None)))
    result = TreeWalker(transformer).walk(node, Action.ENCRYPT)
    assert len(result) == 3
    assert result.items[0] == Scalar(None)
    assert is_encrypted(result.items[1].value)


@pytest.mark.parametrize('node', [None, Mapping(), Sequence()])
def test_empty(transformer, node):
    assert TreeWalker(transformer).walk(node, Action.ENCRYPT) == node


def test_scalar_root(transformer):
    result = TreeWalker(transformer).walk(Scalar('secret'), Action.ENCRYPT)
    assert is_encrypted(result.value)


def test_best_effort(transformer, encrypted):
    lost = encrypted('Lost Key', 'lost')
    node = Node.from_python({'secure_vars': [encrypted('Salt Master', 'found'), lost]})
    walker = TreeWalker(transformer)
    result = walker.walk(node, Action.DECRYPT)
    assert result.to_python() == {'secure_vars': ['found', lost]}
    assert [error.path for error in walker.errors] == ['secure_vars:1']


def test_strict(transformer, encrypted):
    node = Node.from_python({'a': {'b': encrypted('Lost Key', 'lost')}})
    with pytest.raises(LeafError) as info:
        TreeWalker(transformer, strict=True).walk(node, Action.DECRYPT)
    assert info.value.path == 'a:b'
