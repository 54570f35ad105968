SAMPLE_SEED = 2147483647

LEARNING_RATE = 0.05
NUM_ITERATIONS = 100
PRINT_INTERVAL = 10

# Neurons per layer after the input layer; the last layer is the output.
LAYER_SIZES = (4, 4, 1)

GRAPH_PATH = "plots/graph.dot"
